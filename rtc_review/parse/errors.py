from __future__ import annotations


class StatsParseError(Exception):
    pass


class UnrecognizedFormatError(StatsParseError):
    pass


class MalformedDocumentError(StatsParseError):
    pass


class NotExpectedFormatError(StatsParseError):
    pass
