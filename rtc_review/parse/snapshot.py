from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from rtc_review.model import TRACK_KINDS, MetricSeries, PeerConnection, Session

from ._shared import PeerConnectionBuilder, TrackBuilder
from .detect_format import SNAPSHOT_ROOT_KEY
from .errors import MalformedDocumentError
from .series import (
    build_timestamps,
    compute_bitrate_series,
    compute_packet_loss_series,
    normalize_values,
    numeric_values,
    parse_time_ms,
)

logger = logging.getLogger(__name__)

RTP_DIRECTIONS = {"inbound-rtp": "inbound", "outbound-rtp": "outbound"}

# snapshot metric name -> (canonical metric, multiplier)
COPIED_METRICS: Tuple[Tuple[str, str, float], ...] = (
    ("jitter", "jitter_ms", 1000.0),
    ("framesPerSecond", "fps", 1.0),
    ("frameWidth", "width", 1.0),
    ("frameHeight", "height", 1.0),
    ("freezeCount", "freeze_count", 1.0),
)

StatSeries = Mapping[str, Any]


def _group_by_stat_id(stats: Mapping[str, Any]) -> Dict[str, Dict[str, StatSeries]]:
    """Regroup ``<statId>-<metric>`` keys into one record per stat id."""
    grouped: Dict[str, Dict[str, StatSeries]] = {}
    for key, series in stats.items():
        if not isinstance(key, str) or not isinstance(series, Mapping):
            continue
        split_index = key.rfind("-")
        if split_index <= 0:
            continue
        stat_id, metric = key[:split_index], key[split_index + 1 :]
        grouped.setdefault(stat_id, {})[metric] = series
    return grouped


def _connection_origin_ms(stats: Mapping[str, Any]) -> Optional[float]:
    starts = [
        parse_time_ms(series.get("startTime"))
        for series in stats.values()
        if isinstance(series, Mapping)
    ]
    parsed = [start for start in starts if start is not None]
    return min(parsed) if parsed else None


def _first_raw_value(series: Optional[StatSeries]) -> Any:
    if series is None:
        return None
    values = normalize_values(series.get("values"))
    return values[0] if values else None


def _numeric_series(series: StatSeries, origin_ms: Optional[float]) -> Tuple[List[float], Tuple[float, ...]]:
    values = numeric_values(series.get("values"))
    timestamps = build_timestamps(
        series.get("startTime"), series.get("endTime"), len(values), origin_ms=origin_ms
    )
    return values, timestamps


def _scaled(values: List[float], timestamps: Tuple[float, ...], factor: float) -> MetricSeries:
    return MetricSeries(tuple(timestamps), tuple(value * factor for value in values))


def _fill_rtp_track(
    track: TrackBuilder,
    metrics: Dict[str, StatSeries],
    origin_ms: Optional[float],
) -> None:
    bytes_key = "bytesReceived" if track.direction == "inbound" else "bytesSent"
    bytes_series = metrics.get(bytes_key)
    if bytes_series is not None:
        byte_counts, timestamps = _numeric_series(bytes_series, origin_ms)
        if len(byte_counts) > 1:
            track.series["bitrate_kbps"].replace(compute_bitrate_series(byte_counts, timestamps))

    for source, target, factor in COPIED_METRICS:
        series = metrics.get(source)
        if series is None or series.get("values") is None:
            continue
        values, timestamps = _numeric_series(series, origin_ms)
        scaled = _scaled(values, timestamps, factor)
        track.series[target].extend(scaled.timestamps, scaled.values)

    lost_series = metrics.get("packetsLost")
    received_series = metrics.get("packetsReceived")
    if (
        lost_series is not None
        and received_series is not None
        and lost_series.get("values") is not None
        and received_series.get("values") is not None
    ):
        lost, loss_times = _numeric_series(lost_series, origin_ms)
        received = numeric_values(received_series.get("values"))
        track.series["packet_loss_pct"].replace(compute_packet_loss_series(lost, received, loss_times))


def _apply_rtt(
    pc: PeerConnectionBuilder,
    kind: str,
    metrics: Dict[str, StatSeries],
    origin_ms: Optional[float],
) -> None:
    rtt_series = metrics.get("roundTripTime")
    if rtt_series is None or rtt_series.get("values") is None:
        return
    targets = pc.inbound_tracks(kind)
    if not targets:
        return
    values, timestamps = _numeric_series(rtt_series, origin_ms)
    rtt_ms = _scaled(values, timestamps, 1000.0)
    for track in targets:
        track.series["rtt_ms"].extend(rtt_ms.timestamps, rtt_ms.values)


def _parse_peer_connection(pc_id: str, pc_data: Mapping[str, Any]) -> PeerConnection:
    pc = PeerConnectionBuilder(pc_id)
    stats = pc_data.get("stats")
    if not isinstance(stats, Mapping):
        return pc.freeze()

    origin_ms = _connection_origin_ms(stats)

    for stat_id, metrics in _group_by_stat_id(stats).items():
        stat_type = _first_raw_value(metrics.get("type"))
        kind = _first_raw_value(metrics.get("kind"))
        if not isinstance(stat_type, str) or kind not in TRACK_KINDS:
            continue

        direction = RTP_DIRECTIONS.get(stat_type)
        if direction is not None:
            track = pc.ensure_track(f"{stat_id}:{direction}", kind, direction)
            _fill_rtp_track(track, metrics, origin_ms)
        elif stat_type == "remote-inbound-rtp":
            _apply_rtt(pc, kind, metrics, origin_ms)

    return pc.freeze()


def parse_snapshot(content: str) -> Session:
    """
    Parse a webrtc-internals style snapshot export.

    Unlike the event-log parser there is no per-record recovery: a document that
    is not valid JSON is rejected as a whole.
    """

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as exc:
        raise MalformedDocumentError(f"Invalid JSON snapshot dump: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise MalformedDocumentError(
            f"Invalid snapshot dump: expected a JSON object, got {type(payload).__name__}"
        )

    connections = payload.get(SNAPSHOT_ROOT_KEY)
    if not isinstance(connections, Mapping):
        connections = {}

    peer_connections = [
        _parse_peer_connection(str(pc_id), pc_data)
        for pc_id, pc_data in connections.items()
        if isinstance(pc_data, Mapping)
    ]

    session = Session(peer_connections=tuple(peer_connections), format="snapshot")
    logger.info(
        "Parsed snapshot dump: peer_connections=%d tracks=%d",
        len(session.peer_connections),
        sum(1 for _ in session.tracks()),
    )
    return session
