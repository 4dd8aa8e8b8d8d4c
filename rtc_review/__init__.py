"""Offline WebRTC stats dump review: parse, score and summarize sessions."""

TOOL_VERSION = "0.1.0"

__all__ = [
    "parse_stats_dump",
    "summarize_session",
    "score_track",
]

from .framework.scoring import score_track
from .framework.summary import summarize_session
from .parse import parse_stats_dump
