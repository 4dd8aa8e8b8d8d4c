from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Optional

from rtc_review.model import TRACK_KINDS, Session

from ._shared import PeerConnectionBuilder, TrackBuilder
from .detect_format import EVENT_LOG_HEADER
from .errors import NotExpectedFormatError
from .series import as_number, bitrate_kbps, packet_loss_pct

logger = logging.getLogger(__name__)

LINE_SPLIT_RE = re.compile(r"\r?\n")

GET_STATS_EVENT = "getStats"
TRACK_PREFIX = "track:"


@dataclass
class _TrackAccumulator:
    track: TrackBuilder
    first_timestamp: Optional[float] = None
    last_bytes: Optional[float] = None
    last_timestamp: Optional[float] = None

    def relative_time(self, timestamp: float) -> float:
        if self.first_timestamp is None:
            self.first_timestamp = timestamp
        return timestamp - self.first_timestamp

    def record_bytes(self, byte_count: float, timestamp: float, time: float) -> None:
        if self.last_bytes is not None and self.last_timestamp is not None:
            kbps = bitrate_kbps(self.last_bytes, self.last_timestamp, byte_count, timestamp)
            if kbps is not None:
                self.track.series["bitrate_kbps"].append(time, kbps)
        self.last_bytes = byte_count
        self.last_timestamp = timestamp


def _format_identifier(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _track_key(stat: Mapping[str, Any], stat_key: str, direction: str) -> str:
    track_identifier = stat.get("trackIdentifier")
    if isinstance(track_identifier, str) and track_identifier:
        return f"{TRACK_PREFIX}{direction}:{track_identifier}"
    ssrc = as_number(stat.get("ssrc"))
    if ssrc is not None:
        return f"{TRACK_PREFIX}{direction}:{_format_identifier(ssrc)}"
    stat_id = stat.get("id")
    if not isinstance(stat_id, str) or not stat_id:
        stat_id = stat_key
    return f"{TRACK_PREFIX}{direction}:{stat_id}"


def _stat_timestamp(stat: Mapping[str, Any]) -> Optional[float]:
    timestamp = as_number(stat.get("timestamp"))
    if not timestamp:
        return None
    return timestamp


def _append(acc: _TrackAccumulator, metric: str, time: float, value: Optional[float]) -> None:
    if value is not None:
        acc.track.series[metric].append(time, value)


def _add_video_metrics(acc: _TrackAccumulator, stat: Mapping[str, Any], time: float) -> None:
    _append(acc, "fps", time, as_number(stat.get("framesPerSecond")))

    width = stat.get("frameWidth")
    if width is None:
        width = stat.get("width")
    height = stat.get("frameHeight")
    if height is None:
        height = stat.get("height")
    _append(acc, "width", time, as_number(width))
    _append(acc, "height", time, as_number(height))


def _add_inbound_metrics(acc: _TrackAccumulator, stat: Mapping[str, Any]) -> None:
    timestamp = _stat_timestamp(stat)
    if timestamp is None:
        return
    time = acc.relative_time(timestamp)

    jitter = as_number(stat.get("jitter"))
    if jitter is not None:
        acc.track.series["jitter_ms"].append(time, jitter * 1000)

    lost = as_number(stat.get("packetsLost"))
    received = as_number(stat.get("packetsReceived"))
    if lost is not None and received is not None:
        _append(acc, "packet_loss_pct", time, packet_loss_pct(lost, received))

    _add_video_metrics(acc, stat, time)
    _append(acc, "freeze_count", time, as_number(stat.get("freezeCount")))

    byte_count = as_number(stat.get("bytesReceived"))
    if byte_count is not None:
        acc.record_bytes(byte_count, timestamp, time)


def _add_outbound_metrics(acc: _TrackAccumulator, stat: Mapping[str, Any]) -> None:
    timestamp = _stat_timestamp(stat)
    if timestamp is None:
        return
    time = acc.relative_time(timestamp)

    _add_video_metrics(acc, stat, time)

    byte_count = as_number(stat.get("bytesSent"))
    if byte_count is not None:
        acc.record_bytes(byte_count, timestamp, time)


def _apply_rtt(accumulators: Dict[str, _TrackAccumulator], stat: Mapping[str, Any]) -> None:
    kind = stat.get("kind")
    timestamp = as_number(stat.get("timestamp"))
    rtt_seconds = as_number(stat.get("roundTripTime"))
    if kind not in TRACK_KINDS or timestamp is None or rtt_seconds is None:
        return
    targets = [
        acc
        for acc in accumulators.values()
        if acc.track.kind == kind and acc.track.direction == "inbound"
    ]
    for acc in targets:
        acc.track.series["rtt_ms"].append(acc.relative_time(timestamp), rtt_seconds * 1000)


def _ensure_accumulator(
    pc: PeerConnectionBuilder,
    accumulators: Dict[str, _TrackAccumulator],
    key: str,
    kind: str,
    direction: str,
) -> _TrackAccumulator:
    existing = accumulators.get(key)
    if existing is not None:
        return existing
    acc = _TrackAccumulator(pc.ensure_track(key, kind, direction))
    accumulators[key] = acc
    return acc


def parse_event_log(content: str) -> Session:
    if not content.lstrip().startswith(EVENT_LOG_HEADER):
        raise NotExpectedFormatError("not an event-log dump")

    pcs: Dict[str, PeerConnectionBuilder] = {}
    accumulators_by_pc: Dict[str, Dict[str, _TrackAccumulator]] = {}
    skipped_lines = 0
    events = 0

    for line in LINE_SPLIT_RE.split(content):
        if not line.startswith("["):
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            skipped_lines += 1
            continue
        if not isinstance(event, list) or len(event) < 3:
            skipped_lines += 1
            continue

        event_type, pc_id, stats = event[0], event[1], event[2]
        if event_type != GET_STATS_EVENT or not isinstance(pc_id, str) or not isinstance(stats, Mapping):
            continue
        events += 1

        pc = pcs.get(pc_id)
        if pc is None:
            pc = pcs[pc_id] = PeerConnectionBuilder(pc_id)
        accumulators = accumulators_by_pc.setdefault(pc_id, {})

        for stat_key, stat in stats.items():
            if not isinstance(stat, Mapping):
                continue
            stat_type = stat.get("type")
            kind = stat.get("kind")

            if stat_type == "inbound-rtp" and kind in TRACK_KINDS:
                key = _track_key(stat, stat_key, "inbound")
                _add_inbound_metrics(_ensure_accumulator(pc, accumulators, key, kind, "inbound"), stat)
            elif stat_type == "outbound-rtp" and kind in TRACK_KINDS:
                key = _track_key(stat, stat_key, "outbound")
                _add_outbound_metrics(_ensure_accumulator(pc, accumulators, key, kind, "outbound"), stat)
            elif stat_type == "remote-inbound-rtp":
                _apply_rtt(accumulators, stat)

    if skipped_lines:
        logger.debug("Event log: skipped_lines=%d (invalid JSON or not an event array)", skipped_lines)

    session = Session(peer_connections=tuple(pc.freeze() for pc in pcs.values()), format="event-log")
    logger.info(
        "Parsed event-log dump: getStats_events=%d peer_connections=%d tracks=%d",
        events,
        len(session.peer_connections),
        sum(1 for _ in session.tracks()),
    )
    return session
