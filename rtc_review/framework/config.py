from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Tuple


@dataclass(frozen=True)
class ThresholdBand:
    good: float
    bad: float


@dataclass(frozen=True)
class BitrateTier:
    """A track meeting either minimum dimension gets ``target_kbps``."""

    min_width: int
    min_height: int
    target_kbps: float


@dataclass(frozen=True)
class ScoringThresholds:
    jitter_ms: ThresholdBand = ThresholdBand(good=30, bad=100)
    rtt_ms: ThresholdBand = ThresholdBand(good=300, bad=600)
    packet_loss_pct: ThresholdBand = ThresholdBand(good=2, bad=5)
    fps: ThresholdBand = ThresholdBand(good=30, bad=10)
    freeze_count: ThresholdBand = ThresholdBand(good=0, bad=3)
    # Ordered from the highest resolution down; first match wins.
    bitrate_tiers: Tuple[BitrateTier, ...] = (
        BitrateTier(min_width=1280, min_height=720, target_kbps=1500),
        BitrateTier(min_width=640, min_height=480, target_kbps=600),
    )
    bitrate_fallback_kbps: float = 300
    bitrate_bad_ratio: float = 0.5


DEFAULT_THRESHOLDS = ScoringThresholds()

LOWER_IS_BETTER_BANDS = ("jitter_ms", "rtt_ms", "packet_loss_pct", "freeze_count")
HIGHER_IS_BETTER_BANDS = ("fps",)
_BITRATE_KEYS = {"tiers", "fallback_kbps", "bad_ratio"}


def parse_float(value: Any, path: str) -> float:
    if value is None:
        raise ValueError(f"Invalid config value for {path}: None")
    if isinstance(value, bool):
        raise ValueError(f"Invalid config type for {path}: expected float, got bool")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        if not value.strip():
            raise ValueError(f"Invalid config value for {path}: must be a float")
        try:
            return float(value.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid config value for {path}: must be a float") from exc
    raise ValueError(f"Invalid config type for {path}: expected float")


def parse_int(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"Invalid config type for {path}: expected int")
    try:
        return int(value.strip()) if isinstance(value, str) else value
    except ValueError as exc:
        raise ValueError(f"Invalid config value for {path}: must be an int") from exc


def _parse_band(base: ThresholdBand, raw: Any, path: str, *, higher_is_better: bool) -> ThresholdBand:
    if not isinstance(raw, Mapping):
        raise ValueError(f"Invalid config type for {path}: expected mapping with good/bad")
    unknown = set(raw) - {"good", "bad"}
    if unknown:
        raise ValueError(f"Unknown keys under {path}: {', '.join(sorted(map(str, unknown)))}")

    good = parse_float(raw["good"], f"{path}.good") if "good" in raw else base.good
    bad = parse_float(raw["bad"], f"{path}.bad") if "bad" in raw else base.bad
    if higher_is_better and good < bad:
        raise ValueError(f"Invalid thresholds for {path}: good ({good}) must be >= bad ({bad})")
    if not higher_is_better and good > bad:
        raise ValueError(f"Invalid thresholds for {path}: good ({good}) must be <= bad ({bad})")
    return ThresholdBand(good=good, bad=bad)


def _parse_tiers(raw: Any, path: str) -> Tuple[BitrateTier, ...]:
    if not isinstance(raw, list):
        raise ValueError(f"Invalid config type for {path}: expected a list")
    tiers = []
    for idx, item in enumerate(raw):
        item_path = f"{path}[{idx}]"
        if not isinstance(item, Mapping):
            raise ValueError(f"Invalid config type for {item_path}: expected mapping")
        target = parse_float(item.get("target_kbps"), f"{item_path}.target_kbps")
        if target <= 0:
            raise ValueError(f"Invalid config value for {item_path}.target_kbps: must be > 0")
        tiers.append(
            BitrateTier(
                min_width=parse_int(item.get("min_width", 0), f"{item_path}.min_width"),
                min_height=parse_int(item.get("min_height", 0), f"{item_path}.min_height"),
                target_kbps=target,
            )
        )
    return tuple(tiers)


def thresholds_from_overrides(
    overrides: Mapping[str, Any] | None,
    *,
    base: ScoringThresholds = DEFAULT_THRESHOLDS,
    path: str = "scoring",
) -> ScoringThresholds:
    """Return a copy of ``base`` with the given overrides applied. Unknown keys are errors."""

    if not overrides:
        return base
    if not isinstance(overrides, Mapping):
        raise ValueError(f"Invalid config type for {path}: expected mapping")

    known = set(LOWER_IS_BETTER_BANDS) | set(HIGHER_IS_BETTER_BANDS) | {"bitrate"}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown keys under {path}: {', '.join(sorted(map(str, unknown)))}")

    changes: dict[str, Any] = {}
    for name in LOWER_IS_BETTER_BANDS + HIGHER_IS_BETTER_BANDS:
        if name in overrides:
            changes[name] = _parse_band(
                getattr(base, name),
                overrides[name],
                f"{path}.{name}",
                higher_is_better=name in HIGHER_IS_BETTER_BANDS,
            )

    bitrate = overrides.get("bitrate")
    if bitrate is not None:
        if not isinstance(bitrate, Mapping):
            raise ValueError(f"Invalid config type for {path}.bitrate: expected mapping")
        unknown = set(bitrate) - _BITRATE_KEYS
        if unknown:
            raise ValueError(f"Unknown keys under {path}.bitrate: {', '.join(sorted(map(str, unknown)))}")
        if "tiers" in bitrate:
            changes["bitrate_tiers"] = _parse_tiers(bitrate["tiers"], f"{path}.bitrate.tiers")
        if "fallback_kbps" in bitrate:
            changes["bitrate_fallback_kbps"] = parse_float(
                bitrate["fallback_kbps"], f"{path}.bitrate.fallback_kbps"
            )
        if "bad_ratio" in bitrate:
            ratio = parse_float(bitrate["bad_ratio"], f"{path}.bitrate.bad_ratio")
            if not 0 <= ratio <= 1:
                raise ValueError(f"Invalid config value for {path}.bitrate.bad_ratio: must be within [0, 1]")
            changes["bitrate_bad_ratio"] = ratio

    return dataclasses.replace(base, **changes)


def thresholds_from_config(cfg: Mapping[str, Any] | None) -> ScoringThresholds:
    if not cfg:
        return DEFAULT_THRESHOLDS
    return thresholds_from_overrides(cfg.get("scoring"))
