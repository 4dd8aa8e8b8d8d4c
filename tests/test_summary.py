from rtc_review.framework.summary import MAX_ISSUES, percentile, summarize_session, summarize_values
from rtc_review.model import MetricSeries, PeerConnection, Session, Track, TrackMetrics


def _series(*values):
    return MetricSeries(tuple(float(i) for i in range(len(values))), tuple(float(v) for v in values))


def _track(track_id, kind, direction="inbound", **metrics):
    return Track(
        id=track_id,
        kind=kind,
        direction=direction,
        metrics=TrackMetrics(**{name: _series(*values) for name, values in metrics.items()}),
    )


def _perfect_video():
    return _track(
        "video-inbound",
        "video",
        jitter_ms=[30],
        rtt_ms=[300],
        packet_loss_pct=[2],
        fps=[30],
        bitrate_kbps=[1500],
        width=[1280],
        height=[720],
        freeze_count=[0],
    )


def _perfect_audio():
    return _track("audio-inbound", "audio", jitter_ms=[30], rtt_ms=[300], packet_loss_pct=[2])


def test_percentile_nearest_rank():
    values = [float(v) for v in range(20, 0, -1)]
    assert percentile(values, 50) == 10.0
    assert percentile(values, 95) == 19.0
    assert percentile(values, 100) == 20.0
    assert percentile(values, 0) == 1.0
    assert percentile([5.0], 95) == 5.0
    assert percentile([], 50) is None


def test_summarize_values_empty_is_absent():
    stats = summarize_values([])
    assert stats.average is None and stats.p50 is None and stats.p95 is None

    stats = summarize_values([1.0, 2.0, 3.0, 10.0])
    assert stats.average == 4.0
    assert stats.p50 == 2.0
    assert stats.p95 == 10.0


def test_perfect_session_scores_100():
    session = Session(peer_connections=(PeerConnection("pc-1", (_perfect_video(), _perfect_audio())),))

    summary = summarize_session(session)

    assert summary.overall_score == 100
    assert [item.score for item in summary.track_summaries] == [100, 100]
    assert all(issue.score == 100 for issue in summary.issues)


def test_empty_session_scores_zero():
    summary = summarize_session(Session())
    assert summary.overall_score == 0
    assert summary.issues == []
    assert summary.track_summaries == []


def test_missing_audio_counts_as_zero():
    session = Session(peer_connections=(PeerConnection("pc-1", (_perfect_video(),)),))
    assert summarize_session(session).overall_score == 70


def test_weighted_score_and_ranked_issues():
    video = _track(
        "video-inbound",
        "video",
        jitter_ms=[15, 20],
        rtt_ms=[150, 160],
        packet_loss_pct=[1, 1.5],
        bitrate_kbps=[1200, 1300],
        fps=[24, 24],
        width=[640, 640],
        height=[480, 480],
        freeze_count=[0, 0],
    )
    audio = _track("audio-inbound", "audio", jitter_ms=[80, 90], rtt_ms=[500, 520], packet_loss_pct=[4, 5])
    session = Session(peer_connections=(PeerConnection("pc-1", (video, audio)),))

    summary = summarize_session(session)

    assert [item.score for item in summary.track_summaries] == [95, 23]
    assert summary.overall_score == 73

    assert len(summary.issues) == MAX_ISSUES
    scores = [issue.score for issue in summary.issues]
    assert scores == sorted(scores)
    assert [(i.kind, i.metric) for i in summary.issues] == [
        ("audio", "packet_loss_pct"),
        ("audio", "jitter_ms"),
        ("audio", "rtt_ms"),
        ("video", "fps"),
        ("video", "jitter_ms"),
    ]
    worst = summary.issues[0]
    assert worst.peer_connection_id == "pc-1"
    assert worst.track_id == "audio-inbound"
    assert worst.score == 17
    assert worst.detail == "packet_loss_pct score 17"


def test_track_summary_covers_all_metrics_and_leaves_track_untouched():
    audio = _perfect_audio()
    session = Session(peer_connections=(PeerConnection("pc-1", (audio,)),))

    item = summarize_session(session).track_summaries[0]

    assert set(item.metrics) == {
        "bitrate_kbps",
        "jitter_ms",
        "rtt_ms",
        "packet_loss_pct",
        "fps",
        "width",
        "height",
        "freeze_count",
    }
    assert item.metrics["jitter_ms"].average == 30.0
    assert item.metrics["fps"].average is None
    assert item.metric_scores == {"jitter_ms": 100, "rtt_ms": 100, "packet_loss_pct": 100}
    assert item.track is audio
    assert session.peer_connections[0].tracks[0].metrics.jitter_ms.values == (30.0,)


def test_issue_count_never_exceeds_limit_across_many_tracks():
    tracks = tuple(_track(f"t{i}", "audio", jitter_ms=[100 - i]) for i in range(12))
    summary = summarize_session(Session(peer_connections=(PeerConnection("pc-1", tracks),)))

    assert len(summary.issues) == MAX_ISSUES
    assert [issue.track_id for issue in summary.issues] == ["t0", "t1", "t2", "t3", "t4"]
