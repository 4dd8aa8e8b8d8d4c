"""Stats dump parsing: format detection plus one parser per dump format."""

from __future__ import annotations

from typing import Callable, Dict

from rtc_review.model import Session

from .detect_format import StatsDumpFormat, detect_format
from .errors import (
    MalformedDocumentError,
    NotExpectedFormatError,
    StatsParseError,
    UnrecognizedFormatError,
)
from .event_log import parse_event_log
from .snapshot import parse_snapshot

__all__ = [
    "PARSERS",
    "MalformedDocumentError",
    "NotExpectedFormatError",
    "StatsDumpFormat",
    "StatsParseError",
    "UnrecognizedFormatError",
    "detect_format",
    "parse_event_log",
    "parse_snapshot",
    "parse_stats_dump",
]

PARSERS: Dict[str, Callable[[str], Session]] = {
    "event-log": parse_event_log,
    "snapshot": parse_snapshot,
}


def parse_stats_dump(content: str) -> Session:
    return PARSERS[detect_format(content)](content)
