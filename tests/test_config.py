import os
from pathlib import Path

import pytest

from rtc_review.foundation.config_io import find_repo_root, load_config
from rtc_review.framework.config import (
    DEFAULT_THRESHOLDS,
    BitrateTier,
    ThresholdBand,
    thresholds_from_config,
    thresholds_from_overrides,
)

ENV_VAR = "TEST_RTC_REVIEW_CONFIG"


def test_default_thresholds_match_reference_table():
    assert DEFAULT_THRESHOLDS.jitter_ms == ThresholdBand(good=30, bad=100)
    assert DEFAULT_THRESHOLDS.rtt_ms == ThresholdBand(good=300, bad=600)
    assert DEFAULT_THRESHOLDS.packet_loss_pct == ThresholdBand(good=2, bad=5)
    assert DEFAULT_THRESHOLDS.fps == ThresholdBand(good=30, bad=10)
    assert DEFAULT_THRESHOLDS.freeze_count == ThresholdBand(good=0, bad=3)
    assert DEFAULT_THRESHOLDS.bitrate_tiers == (
        BitrateTier(1280, 720, 1500),
        BitrateTier(640, 480, 600),
    )
    assert DEFAULT_THRESHOLDS.bitrate_fallback_kbps == 300
    assert DEFAULT_THRESHOLDS.bitrate_bad_ratio == 0.5


def test_overrides_merge_onto_defaults():
    thresholds = thresholds_from_overrides(
        {
            "rtt_ms": {"bad": "800"},
            "bitrate": {"tiers": [{"min_width": 1920, "min_height": 1080, "target_kbps": 3000}], "bad_ratio": 0.25},
        }
    )

    assert thresholds.rtt_ms == ThresholdBand(good=300, bad=800)
    assert thresholds.jitter_ms == DEFAULT_THRESHOLDS.jitter_ms
    assert thresholds.bitrate_tiers == (BitrateTier(1920, 1080, 3000),)
    assert thresholds.bitrate_bad_ratio == 0.25
    assert thresholds.bitrate_fallback_kbps == 300


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"latency": {"good": 1}}, r"Unknown keys under scoring: latency"),
        ({"jitter_ms": {"good": 50, "worst": 1}}, r"Unknown keys under scoring.jitter_ms"),
        ({"jitter_ms": {"good": 200}}, r"good \(200.0\) must be <= bad"),
        ({"fps": {"good": 5}}, r"good \(5.0\) must be >= bad"),
        ({"rtt_ms": {"good": True}}, r"scoring.rtt_ms.good"),
        ({"bitrate": {"bad_ratio": 2}}, r"scoring.bitrate.bad_ratio"),
        ({"bitrate": {"tiers": [{"min_width": 1, "target_kbps": 0}]}}, r"target_kbps: must be > 0"),
        ({"bitrate": {"tiers": {"a": 1}}}, r"expected a list"),
    ],
)
def test_invalid_overrides_raise(overrides, message):
    with pytest.raises(ValueError, match=message):
        thresholds_from_overrides(overrides)


def test_thresholds_from_config_without_scoring_section():
    assert thresholds_from_config({}) is DEFAULT_THRESHOLDS
    assert thresholds_from_config({"other": 1}) is DEFAULT_THRESHOLDS


def test_load_config_base_plus_local_overlay(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "config.yaml").write_text("scoring:\n  jitter_ms:\n    good: 20\n    bad: 90\n", encoding="utf-8")
    (tmp_path / "config.local.yaml").write_text("scoring:\n  jitter_ms:\n    bad: 80\n", encoding="utf-8")

    cfg, meta = load_config(env_var=ENV_VAR, config_dir=str(tmp_path))

    assert cfg == {"scoring": {"jitter_ms": {"good": 20, "bad": 80}}}
    assert meta["mode"] == "base+local"
    assert len(meta["paths"]) == 2
    assert thresholds_from_config(cfg).jitter_ms == ThresholdBand(good=20, bad=80)


def test_load_config_overlay_type_mismatch_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "config.yaml").write_text("scoring:\n  fps:\n    good: 25\n", encoding="utf-8")
    (tmp_path / "config.local.yaml").write_text("scoring: [1, 2]\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"Invalid config overlay merge at scoring"):
        load_config(env_var=ENV_VAR, config_dir=str(tmp_path))


def test_load_config_env_override_loads_single_file(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text("a: 1\n", encoding="utf-8")
    env_path = tmp_path / "mine.yaml"
    env_path.write_text("a: 999\n", encoding="utf-8")
    monkeypatch.setenv(ENV_VAR, str(env_path))

    cfg, meta = load_config(env_var=ENV_VAR, config_dir=str(tmp_path))

    assert cfg == {"a": 999}
    assert meta["mode"] == "env"
    assert meta["paths"] == [os.path.abspath(env_path)]


def test_load_config_invalid_yaml_names_file(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    bad = tmp_path / "broken.yaml"
    bad.write_text("scoring: [1, 2\n", encoding="utf-8")

    with pytest.raises(ValueError) as excinfo:
        load_config(str(bad), env_var=ENV_VAR)

    assert "broken.yaml" in str(excinfo.value)


def test_repo_config_matches_built_in_defaults(monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    repo_root = Path(__file__).resolve().parents[1]

    cfg, meta = load_config(env_var=ENV_VAR, start_dir=str(repo_root / "tests"))

    assert Path(str(meta["repo_root"])).resolve() == repo_root.resolve()
    assert find_repo_root(str(repo_root / "tests")) == str(repo_root)
    assert thresholds_from_config(cfg) == DEFAULT_THRESHOLDS
