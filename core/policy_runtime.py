"""Configuration loading and runtime path bootstrapping."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CLEANUP_STRATEGIES = ("queue", "debounce")

DEFAULT_CONFIG: dict[str, Any] = {
    "containers": {"icon": "circle", "placeholder_name": "Temp"},
    "cleanup": {"strategy": "queue", "debounce_seconds": 0.5, "max_recently_removed": 1024},
    "directory": {"stale_tab_reads": 1},
    "logging": {"level": "INFO"},
    "paths": {"audit_log_path": "logs/audit.jsonl"},
}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Reject values the runtime cannot work with."""
    cleanup = config.get("cleanup", {})
    strategy = cleanup.get("strategy")
    if strategy not in CLEANUP_STRATEGIES:
        raise ValueError(f"cleanup.strategy must be one of {CLEANUP_STRATEGIES}, got {strategy!r}")
    if float(cleanup.get("debounce_seconds", 0)) < 0:
        raise ValueError("cleanup.debounce_seconds must not be negative.")
    if int(cleanup.get("max_recently_removed", 0)) < 1:
        raise ValueError("cleanup.max_recently_removed must be at least 1.")
    return config


def resolve_audit_log_path(root: Path, config: dict[str, Any]) -> Path | None:
    """Resolve the audit log path relative to ``root``; an empty value disables the file."""
    raw = config.get("paths", {}).get("audit_log_path")
    if not raw:
        return None
    return (root / raw).resolve()


def load_effective_config(root: Path) -> dict[str, Any]:
    """Merge built-in defaults, ``config/default.yaml`` and ``config/local.yaml``."""
    config_dir = root / "config"
    merged = merge_dicts(DEFAULT_CONFIG, load_yaml(config_dir / "default.yaml"))
    merged = merge_dicts(merged, load_yaml(config_dir / "local.yaml"))
    return validate_config(merged)
