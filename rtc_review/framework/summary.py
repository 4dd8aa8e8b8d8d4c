from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from rtc_review.model import Session, Track

from .config import DEFAULT_THRESHOLDS, ScoringThresholds
from .scoring import average, metric_scores, round_half_up, score_track

MAX_ISSUES = 5
VIDEO_WEIGHT = 0.7
AUDIO_WEIGHT = 0.3


@dataclass(frozen=True)
class MetricSummary:
    average: Optional[float] = None
    p50: Optional[float] = None
    p95: Optional[float] = None


@dataclass(frozen=True)
class TrackSummary:
    peer_connection_id: str
    track: Track
    score: int
    metrics: Dict[str, MetricSummary] = field(default_factory=dict)
    metric_scores: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Issue:
    peer_connection_id: str
    track_id: str
    kind: str
    direction: str
    metric: str
    score: int
    detail: str


@dataclass(frozen=True)
class SessionSummary:
    overall_score: int
    issues: List[Issue] = field(default_factory=list)
    track_summaries: List[TrackSummary] = field(default_factory=list)


def percentile(values: Sequence[float], p: float) -> Optional[float]:
    """Nearest-rank percentile over an ascending copy of ``values``."""
    if not values:
        return None
    ordered = sorted(values)
    index = math.ceil((p / 100) * len(ordered)) - 1
    return ordered[max(0, min(len(ordered) - 1, index))]


def summarize_values(values: Sequence[float]) -> MetricSummary:
    return MetricSummary(
        average=average(values),
        p50=percentile(values, 50),
        p95=percentile(values, 95),
    )


def _mean_or_zero(scores: List[int]) -> float:
    return sum(scores) / len(scores) if scores else 0.0


def summarize_session(
    session: Session,
    thresholds: ScoringThresholds = DEFAULT_THRESHOLDS,
) -> SessionSummary:
    track_summaries: List[TrackSummary] = []
    issues: List[Issue] = []

    for pc, track in session.tracks():
        sub_scores = metric_scores(track, thresholds)
        track_summaries.append(
            TrackSummary(
                peer_connection_id=pc.id,
                track=track,
                score=score_track(track, thresholds),
                metrics={name: summarize_values(series.values) for name, series in track.metrics.items()},
                metric_scores=sub_scores,
            )
        )
        for metric, score in sub_scores.items():
            issues.append(
                Issue(
                    peer_connection_id=pc.id,
                    track_id=track.id,
                    kind=track.kind,
                    direction=track.direction,
                    metric=metric,
                    score=score,
                    detail=f"{metric} score {score}",
                )
            )

    video_mean = _mean_or_zero([s.score for s in track_summaries if s.track.kind == "video"])
    audio_mean = _mean_or_zero([s.score for s in track_summaries if s.track.kind == "audio"])
    overall = round_half_up(VIDEO_WEIGHT * video_mean + AUDIO_WEIGHT * audio_mean)

    # sorted() is stable, so ties keep track/metric order.
    ranked = sorted(issues, key=lambda issue: issue.score)
    return SessionSummary(
        overall_score=overall,
        issues=ranked[:MAX_ISSUES],
        track_summaries=track_summaries,
    )
