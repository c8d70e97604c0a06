"""Configuration and runtime bootstrapping."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "db_path": "workspace/taskgraph.db",
        "audit_log_path": "logs/dependency_audit.jsonl",
    },
    "storage": {"busy_timeout_ms": 5000, "journal_mode": "WAL", "echo": False},
    "validator": {"closure_threshold": 200},
    "timeline": {"empty_window_days": 30, "end_buffer_days": 7},
    "logging": {"level": "INFO"},
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


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure database and log directories exist and return resolved paths."""
    paths_cfg = config.get("paths", {})
    db_path = (root / paths_cfg.get("db_path", "workspace/taskgraph.db")).resolve()
    audit_log_path = (
        root / paths_cfg.get("audit_log_path", "logs/dependency_audit.jsonl")
    ).resolve()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    audit_log_path.parent.mkdir(parents=True, exist_ok=True)

    return {"db_path": db_path, "audit_log_path": audit_log_path}


def load_effective_config(root: Path) -> dict[str, Any]:
    """Built-in defaults, then config/default.yaml, then config/local.yaml."""
    config_dir = root / "config"
    merged = merge_dicts(DEFAULT_CONFIG, load_yaml(config_dir / "default.yaml"))
    return merge_dicts(merged, load_yaml(config_dir / "local.yaml"))


def configure_logging(config: dict[str, Any]) -> None:
    level_name = str(config.get("logging", {}).get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level: {level_name}")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("tg").setLevel(level)
