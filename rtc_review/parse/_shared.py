from __future__ import annotations

from typing import Dict, List

from rtc_review.model import METRIC_NAMES, PeerConnection, Track, TrackMetrics

from .series import SeriesBuffer


class TrackBuilder:
    def __init__(self, track_id: str, kind: str, direction: str):
        self.id = track_id
        self.kind = kind
        self.direction = direction
        self.series: Dict[str, SeriesBuffer] = {name: SeriesBuffer() for name in METRIC_NAMES}

    def freeze(self) -> Track:
        metrics = TrackMetrics(**{name: buffer.freeze() for name, buffer in self.series.items()})
        return Track(id=self.id, kind=self.kind, direction=self.direction, metrics=metrics)  # type: ignore[arg-type]


class PeerConnectionBuilder:
    def __init__(self, pc_id: str):
        self.id = pc_id
        self.tracks: List[TrackBuilder] = []
        self._by_id: Dict[str, TrackBuilder] = {}

    def ensure_track(self, track_id: str, kind: str, direction: str) -> TrackBuilder:
        existing = self._by_id.get(track_id)
        if existing is not None:
            return existing
        builder = TrackBuilder(track_id, kind, direction)
        self.tracks.append(builder)
        self._by_id[track_id] = builder
        return builder

    def inbound_tracks(self, kind: str) -> List[TrackBuilder]:
        return [t for t in self.tracks if t.kind == kind and t.direction == "inbound"]

    def freeze(self) -> PeerConnection:
        return PeerConnection(id=self.id, tracks=tuple(t.freeze() for t in self.tracks))
