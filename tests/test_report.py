import json

import pytest

from rtc_review import TOOL_VERSION
from rtc_review.framework.summary import summarize_session
from rtc_review.model import MetricSeries, PeerConnection, Session, Track, TrackMetrics
from rtc_review.report import FRAME_COLUMNS, score_band, session_to_dict, summary_frame, summary_to_dict


def _session():
    video = Track(
        id="v",
        kind="video",
        direction="inbound",
        metrics=TrackMetrics(
            fps=MetricSeries((0.0, 1000.0), (20.0, 30.0)),
            jitter_ms=MetricSeries((0.0,), (65.0,)),
        ),
    )
    return Session(peer_connections=(PeerConnection("pc-1", (video,)),), format="event-log")


@pytest.mark.parametrize("score, band", [(100, "good"), (70, "good"), (69, "warn"), (40, "warn"), (39, "bad"), (0, "bad")])
def test_score_band(score, band):
    assert score_band(score) == band


def test_summary_to_dict_is_json_ready():
    payload = summary_to_dict(summarize_session(_session()))
    round_tripped = json.loads(json.dumps(payload))

    assert payload["tool_version"] == TOOL_VERSION
    assert round_tripped["overall_score"] == payload["overall_score"]
    track = payload["track_summaries"][0]
    assert track["metric_scores"] == {"jitter_ms": 50, "fps": 75}
    assert track["metrics"]["fps"] == {"average": 25.0, "p50": 20.0, "p95": 30.0}
    assert track["metrics"]["rtt_ms"] == {"average": None, "p50": None, "p95": None}
    assert payload["issues"][0]["metric"] == "jitter_ms"


def test_session_to_dict_keeps_series():
    payload = session_to_dict(_session())
    assert payload["format"] == "event-log"
    fps = payload["peer_connections"][0]["tracks"][0]["metrics"]["fps"]
    assert fps == {"timestamps": [0.0, 1000.0], "values": [20.0, 30.0]}


def test_summary_frame_has_one_row_per_track_metric():
    frame = summary_frame(summarize_session(_session()))

    assert list(frame.columns) == FRAME_COLUMNS
    assert len(frame) == 8
    fps_row = frame[frame["metric"] == "fps"].iloc[0]
    assert fps_row["samples"] == 2
    assert fps_row["sub_score"] == 75
    assert frame[frame["metric"] == "width"]["average"].isna().all()


def test_summary_frame_empty_session_keeps_columns():
    frame = summary_frame(summarize_session(Session()))
    assert frame.empty
    assert list(frame.columns) == FRAME_COLUMNS
