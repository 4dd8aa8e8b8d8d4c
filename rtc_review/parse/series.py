"""Shared helpers for turning raw stats fields into metric series.

Both dump parsers funnel their numbers through this module so that coercion,
timestamp reconstruction and rate derivation behave identically regardless of
the source format.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from rtc_review.model import MetricSeries

JS_DATE_ZONE_NAME_RE = re.compile(r"\s*\([^)]*\)\s*$")
JS_DATE_GMT_OFFSET_RE = re.compile(r"\b(?:GMT|UTC)(?=[+-]\d)")


def as_number(value: Any) -> Optional[float]:
    """Accept real JSON numbers only (no bools, no numeric strings)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def to_number(value: Any) -> Optional[float]:
    """Like ``as_number`` but also accepts strings holding a number."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return as_number(value)


def normalize_values(values: Any) -> List[Any]:
    if isinstance(values, list):
        return values
    if isinstance(values, str):
        text = values.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                return []
            return parsed if isinstance(parsed, list) else []
    return []


def numeric_values(values: Any) -> List[float]:
    out: List[float] = []
    for item in normalize_values(values):
        number = to_number(item)
        if number is not None:
            out.append(number)
    return out


def parse_time_ms(value: Any) -> Optional[float]:
    """
    Parse a calendar timestamp string into epoch milliseconds.

    Besides ISO strings this accepts the ``Date.toString()`` form found in older
    webrtc-internals exports, e.g.
    ``"Tue May 14 2024 12:00:00 GMT+0200 (Central European Summer Time)"``.
    """
    if not value or not isinstance(value, str):
        return None
    text = JS_DATE_ZONE_NAME_RE.sub("", value)
    # dateutil reads "GMT+0200" as UTC-2, so keep only the offset.
    text = JS_DATE_GMT_OFFSET_RE.sub("", text)
    try:
        ts = pd.to_datetime(text, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.value / 1_000_000


def build_timestamps(
    start: Any,
    end: Any,
    count: int,
    *,
    origin_ms: Optional[float] = None,
) -> Tuple[float, ...]:
    """
    Reconstruct ``count`` sample times for a series exported with only its bounds.

    Interpolated times are expressed relative to ``origin_ms`` (defaults to the
    series' own start). When the bounds are missing, unparseable or reversed the
    sample index is used instead.
    """

    if count <= 0:
        return ()
    if count == 1:
        return (0.0,)

    start_ms = parse_time_ms(start)
    end_ms = parse_time_ms(end)
    if start_ms is not None and end_ms is not None and end_ms >= start_ms:
        base = start_ms if origin_ms is None else origin_ms
        step = (end_ms - start_ms) / (count - 1)
        return tuple((start_ms - base) + step * i for i in range(count))

    return tuple(float(i) for i in range(count))


def bitrate_kbps(
    previous_bytes: float,
    previous_ms: float,
    current_bytes: float,
    current_ms: float,
) -> Optional[float]:
    """Bytes over milliseconds is bits-per-ms times 8, which equals kbps.

    Returns None for a zero/negative interval or a counter reset.
    """

    delta_bytes = current_bytes - previous_bytes
    delta_ms = current_ms - previous_ms
    if delta_ms > 0 and delta_bytes >= 0:
        return (delta_bytes * 8) / delta_ms
    return None


def packet_loss_pct(lost: float, received: float) -> Optional[float]:
    total = lost + received
    if total > 0:
        return (lost / total) * 100
    return None


def compute_bitrate_series(byte_counts: Sequence[float], timestamps: Sequence[float]) -> MetricSeries:
    buffer = SeriesBuffer()
    for i in range(1, min(len(byte_counts), len(timestamps))):
        kbps = bitrate_kbps(byte_counts[i - 1], timestamps[i - 1], byte_counts[i], timestamps[i])
        if kbps is not None:
            buffer.append(timestamps[i], kbps)
    return buffer.freeze()


def compute_packet_loss_series(
    packets_lost: Sequence[float],
    packets_received: Sequence[float],
    timestamps: Sequence[float],
) -> MetricSeries:
    buffer = SeriesBuffer()
    length = min(len(packets_lost), len(packets_received), len(timestamps))
    for i in range(length):
        pct = packet_loss_pct(packets_lost[i], packets_received[i])
        if pct is not None:
            buffer.append(timestamps[i], pct)
    return buffer.freeze()


class SeriesBuffer:
    """Append-only accumulator for one metric while a dump is being parsed."""

    def __init__(self) -> None:
        self.timestamps: List[float] = []
        self.values: List[float] = []

    def __len__(self) -> int:
        return len(self.values)

    def append(self, timestamp: float, value: float) -> None:
        self.timestamps.append(float(timestamp))
        self.values.append(float(value))

    def extend(self, timestamps: Iterable[float], values: Iterable[float]) -> None:
        for timestamp, value in zip(timestamps, values):
            self.append(timestamp, value)

    def replace(self, series: MetricSeries) -> None:
        self.timestamps = list(series.timestamps)
        self.values = list(series.values)

    def freeze(self) -> MetricSeries:
        return MetricSeries(tuple(self.timestamps), tuple(self.values))
