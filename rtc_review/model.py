from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Literal, Optional, Tuple

TrackKind = Literal["audio", "video"]
TrackDirection = Literal["inbound", "outbound"]

TRACK_KINDS: Tuple[str, ...] = ("audio", "video")

METRIC_NAMES: Tuple[str, ...] = (
    "bitrate_kbps",
    "jitter_ms",
    "rtt_ms",
    "packet_loss_pct",
    "fps",
    "width",
    "height",
    "freeze_count",
)


@dataclass(frozen=True)
class MetricSeries:
    timestamps: Tuple[float, ...] = ()
    values: Tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if len(self.timestamps) != len(self.values):
            raise ValueError(
                f"MetricSeries length mismatch: timestamps={len(self.timestamps)} values={len(self.values)}"
            )

    def __len__(self) -> int:
        return len(self.values)

    @property
    def observed(self) -> bool:
        return bool(self.values)


@dataclass(frozen=True)
class TrackMetrics:
    bitrate_kbps: MetricSeries = field(default_factory=MetricSeries)
    jitter_ms: MetricSeries = field(default_factory=MetricSeries)
    rtt_ms: MetricSeries = field(default_factory=MetricSeries)
    packet_loss_pct: MetricSeries = field(default_factory=MetricSeries)
    fps: MetricSeries = field(default_factory=MetricSeries)
    width: MetricSeries = field(default_factory=MetricSeries)
    height: MetricSeries = field(default_factory=MetricSeries)
    freeze_count: MetricSeries = field(default_factory=MetricSeries)

    def get(self, name: str) -> MetricSeries:
        if name not in METRIC_NAMES:
            raise KeyError(f"Unknown metric: {name}")
        return getattr(self, name)

    def items(self) -> Iterator[Tuple[str, MetricSeries]]:
        for name in METRIC_NAMES:
            yield name, getattr(self, name)


@dataclass(frozen=True)
class Track:
    id: str
    kind: TrackKind
    direction: TrackDirection
    metrics: TrackMetrics = field(default_factory=TrackMetrics)


@dataclass(frozen=True)
class PeerConnection:
    id: str
    tracks: Tuple[Track, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for track in self.tracks:
            if track.id in seen:
                raise ValueError(f"Duplicate track id {track.id!r} in peer connection {self.id!r}")
            seen.add(track.id)


@dataclass(frozen=True)
class Session:
    """Canonical model produced by both dump parsers.

    ``format`` records which parser built the session; it is informational only.
    """

    peer_connections: Tuple[PeerConnection, ...] = ()
    format: Optional[str] = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for pc in self.peer_connections:
            if pc.id in seen:
                raise ValueError(f"Duplicate peer connection id {pc.id!r}")
            seen.add(pc.id)

    def tracks(self) -> Iterator[Tuple[PeerConnection, Track]]:
        for pc in self.peer_connections:
            for track in pc.tracks:
                yield pc, track

    def peer_connection(self, pc_id: str) -> Optional[PeerConnection]:
        for pc in self.peer_connections:
            if pc.id == pc_id:
                return pc
        return None
