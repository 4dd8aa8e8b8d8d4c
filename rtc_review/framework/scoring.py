from __future__ import annotations

import math
from typing import Dict, Optional, Sequence

from rtc_review.model import Track

from .config import DEFAULT_THRESHOLDS, ScoringThresholds


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def average(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def score_lower_is_better(value: float, good_max: float, bad_min: float) -> int:
    if value <= good_max:
        return 100
    if value >= bad_min:
        return 0
    ratio = (bad_min - value) / (bad_min - good_max)
    return round_half_up(ratio * 100)


def score_higher_is_better(value: float, bad_max: float, good_min: float) -> int:
    if value <= bad_max:
        return 0
    if value >= good_min:
        return 100
    ratio = (value - bad_max) / (good_min - bad_max)
    return round_half_up(ratio * 100)


def resolution_target_kbps(
    width: Optional[float],
    height: Optional[float],
    thresholds: ScoringThresholds = DEFAULT_THRESHOLDS,
) -> float:
    w = width or 0
    h = height or 0
    for tier in thresholds.bitrate_tiers:
        if w >= tier.min_width or h >= tier.min_height:
            return tier.target_kbps
    return thresholds.bitrate_fallback_kbps


def metric_scores(track: Track, thresholds: ScoringThresholds = DEFAULT_THRESHOLDS) -> Dict[str, int]:
    """
    Sub-scores for every metric the track actually observed.

    Metrics with no samples are absent from the result rather than scored 0.
    """

    metrics = track.metrics
    scores: Dict[str, int] = {}

    for name in ("jitter_ms", "rtt_ms", "packet_loss_pct"):
        avg = average(metrics.get(name).values)
        if avg is not None:
            band = getattr(thresholds, name)
            scores[name] = score_lower_is_better(avg, band.good, band.bad)

    fps_avg = average(metrics.fps.values)
    if fps_avg is not None:
        scores["fps"] = score_higher_is_better(fps_avg, thresholds.fps.bad, thresholds.fps.good)

    bitrate_avg = average(metrics.bitrate_kbps.values)
    if bitrate_avg is not None:
        target = resolution_target_kbps(
            average(metrics.width.values), average(metrics.height.values), thresholds
        )
        scores["bitrate_kbps"] = score_higher_is_better(
            bitrate_avg, target * thresholds.bitrate_bad_ratio, target
        )

    # Any freeze matters, so the worst observed count is scored.
    if metrics.freeze_count.values:
        band = thresholds.freeze_count
        scores["freeze_count"] = score_lower_is_better(max(metrics.freeze_count.values), band.good, band.bad)

    return scores


def score_track(track: Track, thresholds: ScoringThresholds = DEFAULT_THRESHOLDS) -> int:
    scores = list(metric_scores(track, thresholds).values())
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))
