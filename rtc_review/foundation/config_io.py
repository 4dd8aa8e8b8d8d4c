from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "RTC_REVIEW_CONFIG"


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    markers = ("pyproject.toml", ".git")
    for candidate in (start_path, *start_path.parents):
        if any((candidate / marker).exists() for marker in markers):
            return str(candidate)

    raise FileNotFoundError(
        f"Cannot locate repo root: searched from {start_path} for {', '.join(markers)}"
    )


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def _deep_merge(base: Any, overlay: Any, *, path: str) -> Any:
    if base is None or overlay is None:
        return overlay

    if isinstance(base, Mapping):
        if not isinstance(overlay, Mapping):
            raise ValueError(
                f"Invalid config overlay merge at {path}: base is mapping but overlay is {type(overlay).__name__}"
            )
        merged: dict[str, Any] = dict(base)
        for key, overlay_value in overlay.items():
            next_path = f"{path}.{key}" if path else str(key)
            merged[key] = _deep_merge(base[key], overlay_value, path=next_path) if key in base else overlay_value
        return merged

    if isinstance(overlay, Mapping):
        raise ValueError(
            f"Invalid config overlay merge at {path}: base is {type(base).__name__} but overlay is mapping"
        )
    return overlay


def load_config(
    config_path: str | None = None,
    *,
    env_var: str = CONFIG_ENV_VAR,
    config_dir: str | None = None,
    start_dir: str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the YAML configuration.

    An explicit ``config_path`` (or the ``env_var`` environment variable) loads
    exactly that file. Otherwise ``config/config.yaml`` under the repo root is
    loaded and ``config.local.yaml`` next to it, when present, is merged on top.

    Returns ``(config, meta)`` where meta records which files were read.
    """

    explicit_path = (config_path or "").strip() or None
    mode = "explicit"
    if explicit_path is None and env_var:
        explicit_path = os.environ.get(env_var, "").strip() or None
        mode = "env"

    if explicit_path:
        expanded = os.path.abspath(os.path.expandvars(os.path.expanduser(explicit_path)))
        cfg = _load_yaml_mapping(expanded)
        return cfg, {"mode": mode, "paths": [expanded], "env_var": env_var, "repo_root": None}

    repo_root: str | None = None
    if config_dir is None:
        repo_root = find_repo_root(start_dir)
        config_dir = os.path.join(repo_root, "config")

    base_config_path = os.path.join(config_dir, "config.yaml")
    local_overlay_path = os.path.join(config_dir, "config.local.yaml")
    if not os.path.exists(base_config_path):
        raise FileNotFoundError(f"Missing base config file: {base_config_path}")

    cfg = _load_yaml_mapping(base_config_path)
    loaded_paths = [os.path.abspath(base_config_path)]
    mode = "base"

    if os.path.exists(local_overlay_path):
        cfg = _deep_merge(cfg, _load_yaml_mapping(local_overlay_path), path="")
        loaded_paths.append(os.path.abspath(local_overlay_path))
        mode = "base+local"

    return cfg, {"mode": mode, "paths": loaded_paths, "env_var": env_var, "repo_root": repo_root}
