from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Literal

from .errors import UnrecognizedFormatError

StatsDumpFormat = Literal["event-log", "snapshot"]

EVENT_LOG_HEADER = "RTCStatsDump"
SNAPSHOT_ROOT_KEY = "PeerConnections"


def detect_format(content: str) -> StatsDumpFormat:
    trimmed = content.lstrip()
    if trimmed.startswith(EVENT_LOG_HEADER):
        return "event-log"

    if trimmed.startswith("{"):
        # Parsed here only to check the signature; the snapshot parser re-parses.
        try:
            payload = json.loads(trimmed)
        except json.JSONDecodeError as exc:
            raise UnrecognizedFormatError(f"Unrecognized stats dump format: invalid JSON ({exc})") from exc
        if isinstance(payload, Mapping) and SNAPSHOT_ROOT_KEY in payload:
            return "snapshot"

    raise UnrecognizedFormatError("Unrecognized stats dump format")
