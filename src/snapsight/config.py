"""Configuration management for SnapSight."""

import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "data_path": "~/.snapsight",
    "db_path": "~/.snapsight/analyses-db.json",
    "vector_store_path": "~/.snapsight/vector-store.json",
    "inbox_path": "~/.snapsight/inbox",
    "embedding_model": "intfloat/e5-large-v2",
    "claude_model": "claude-sonnet-4-20250514",
    "max_similar": 3,
    "use_mock_data": False,
    "vector_dimension": None,
    "image": {"max_size": 1024, "jpeg_quality": 90},
}

PATH_KEYS = ("data_path", "db_path", "vector_store_path", "inbox_path")


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".snapsight" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = _copy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if api_key := os.environ.get("ANTHROPIC_API_KEY"):
        cfg["claude_api_key"] = api_key
    if db_path := os.environ.get("DB_PATH"):
        cfg["db_path"] = db_path
    if store_path := os.environ.get("VECTOR_STORE_PATH"):
        cfg["vector_store_path"] = store_path
    if max_similar := os.environ.get("MAX_SIMILAR"):
        cfg["max_similar"] = int(max_similar)
    if os.environ.get("USE_MOCK_DATA", "").lower() == "true":
        cfg["use_mock_data"] = True

    # Expand paths
    for key in PATH_KEYS:
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())

    return cfg


def use_mock(config: dict[str, Any]) -> bool:
    """Mock analysis runs when asked for, or when there is no API key to call with."""
    return bool(config.get("use_mock_data")) or not config.get("claude_api_key")


def _copy(cfg: dict) -> dict:
    return {k: _copy(v) if isinstance(v, dict) else v for k, v in cfg.items()}


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
