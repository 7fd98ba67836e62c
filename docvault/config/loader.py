"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- static pipeline tables checked into the repo
#                              (task priorities, ingestion task types,
#                              text file extensions)
#   2. .env file           -- local overrides (not committed)
#   3. Environment vars    -- set per machine
#
# load_config() reads the YAML file first, then deep-merges the
# Settings-backed values on top.  The built-in defaults below are used
# when the YAML file is absent, so an installed package still works.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from docvault.config.settings import Settings

DEFAULT_CONFIG: dict[str, Any] = {
    "cleaning": {
        "task_priorities": {
            "text_cleanup": 3,
            "metadata_extraction": 2,
            "format_conversion": 1,
            "structure_repair": 1,
            "content_normalization": 1,
            "duplicate_removal": 1,
        },
    },
    "ingestion": {
        "task_types": ["text_cleanup", "metadata_extraction", "format_conversion"],
        "text_extensions": [
            ".txt", ".md", ".markdown", ".rst", ".csv", ".tsv", ".log", ".ini",
            ".cfg", ".toml", ".yaml", ".yml", ".py", ".js", ".ts", ".rs", ".go",
            ".java", ".c", ".h", ".cpp", ".sh", ".sql", ".xml",
        ],
    },
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            # safe_load: config files never need arbitrary Python objects.
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "datastore": {
            "path": settings.database_path,
        },
        "embedding": {
            "backend": settings.embedding_backend,
            "model": settings.embedding_model,
            "timeout_seconds": settings.provider_timeout_seconds,
        },
        "chunking": {
            "size": settings.chunk_size,
            "overlap": settings.chunk_overlap,
            "unit": settings.chunk_unit,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(config, env_overrides)
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
