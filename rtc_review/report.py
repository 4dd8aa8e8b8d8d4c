from __future__ import annotations

import dataclasses
from typing import Any, Dict, List

import pandas as pd

from rtc_review import TOOL_VERSION
from rtc_review.framework.summary import Issue, SessionSummary, TrackSummary
from rtc_review.model import Session, Track

GOOD_SCORE_MIN = 70
WARN_SCORE_MIN = 40

FRAME_COLUMNS = [
    "peer_connection_id",
    "track_id",
    "kind",
    "direction",
    "metric",
    "samples",
    "average",
    "p50",
    "p95",
    "sub_score",
]


def score_band(score: int) -> str:
    if score >= GOOD_SCORE_MIN:
        return "good"
    if score >= WARN_SCORE_MIN:
        return "warn"
    return "bad"


def _serialize_track(track: Track) -> Dict[str, Any]:
    return {
        "id": track.id,
        "kind": track.kind,
        "direction": track.direction,
        "metrics": {
            name: {"timestamps": list(series.timestamps), "values": list(series.values)}
            for name, series in track.metrics.items()
        },
    }


def session_to_dict(session: Session) -> Dict[str, Any]:
    return {
        "format": session.format,
        "peer_connections": [
            {"id": pc.id, "tracks": [_serialize_track(track) for track in pc.tracks]}
            for pc in session.peer_connections
        ],
    }


def summary_to_dict(summary: SessionSummary) -> Dict[str, Any]:
    def serialize_track_summary(item: TrackSummary) -> Dict[str, Any]:
        return {
            "peer_connection_id": item.peer_connection_id,
            "track_id": item.track.id,
            "kind": item.track.kind,
            "direction": item.track.direction,
            "score": item.score,
            "band": score_band(item.score),
            "metric_scores": dict(item.metric_scores),
            "metrics": {name: dataclasses.asdict(stats) for name, stats in item.metrics.items()},
        }

    def serialize_issue(issue: Issue) -> Dict[str, Any]:
        return dataclasses.asdict(issue)

    return {
        "tool_version": TOOL_VERSION,
        "overall_score": summary.overall_score,
        "band": score_band(summary.overall_score),
        "issues": [serialize_issue(i) for i in summary.issues],
        "track_summaries": [serialize_track_summary(t) for t in summary.track_summaries],
    }


def summary_frame(summary: SessionSummary) -> pd.DataFrame:
    """One row per (track, metric) with the summary statistics and sub-score."""
    rows: List[Dict[str, Any]] = []
    for item in summary.track_summaries:
        for name, stats in item.metrics.items():
            rows.append(
                {
                    "peer_connection_id": item.peer_connection_id,
                    "track_id": item.track.id,
                    "kind": item.track.kind,
                    "direction": item.track.direction,
                    "metric": name,
                    "samples": len(item.track.metrics.get(name)),
                    "average": stats.average,
                    "p50": stats.p50,
                    "p95": stats.p95,
                    "sub_score": item.metric_scores.get(name),
                }
            )
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)
