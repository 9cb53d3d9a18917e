"""Service configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: GEOCLUSTER_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class EngineConfig:
    # Cell edge at zoom 0 before clamping: a quarter of a 360° world tile.
    base_cell_degrees: float = 90.0
    # Both clamps sit on the halving ladder so every grid nests in the coarser ones.
    min_cell_degrees: float = 90.0 / 2 ** 20
    max_cell_degrees: float = 45.0
    # Occupied-cell bound; above it the grid is coarsened.
    max_cells: int = 50_000
    # Occupied-cell bound when a cap is set, keeps the merge heap small.
    max_merge_candidates: int = 256
    default_max_clusters: int | None = None


@dataclass
class SessionConfig:
    debounce_ms: float = 30.0
    active_window_seconds: float = 120.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _optional_int(v: str) -> int | None:
    return None if v.strip().lower() in ("", "none", "null") else int(v)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "GEOCLUSTER_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "GEOCLUSTER_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "GEOCLUSTER_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "GEOCLUSTER_ENGINE_BASE_CELL_DEGREES": lambda v: setattr(config.engine, "base_cell_degrees", float(v)),
        "GEOCLUSTER_ENGINE_MIN_CELL_DEGREES": lambda v: setattr(config.engine, "min_cell_degrees", float(v)),
        "GEOCLUSTER_ENGINE_MAX_CELL_DEGREES": lambda v: setattr(config.engine, "max_cell_degrees", float(v)),
        "GEOCLUSTER_ENGINE_MAX_CELLS": lambda v: setattr(config.engine, "max_cells", int(v)),
        "GEOCLUSTER_ENGINE_MAX_MERGE_CANDIDATES": lambda v: setattr(config.engine, "max_merge_candidates", int(v)),
        "GEOCLUSTER_ENGINE_DEFAULT_MAX_CLUSTERS": lambda v: setattr(config.engine, "default_max_clusters", _optional_int(v)),
        "GEOCLUSTER_SESSION_DEBOUNCE_MS": lambda v: setattr(config.session, "debounce_ms", float(v)),
        "GEOCLUSTER_SESSION_ACTIVE_WINDOW": lambda v: setattr(config.session, "active_window_seconds", float(v)),
        "GEOCLUSTER_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "GEOCLUSTER_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "GEOCLUSTER_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    if config_path is None:
        config_path = Path(os.environ.get("GEOCLUSTER_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in ("server", "engine", "session", "logging"):
            if section in raw:
                target = getattr(config, section)
                for k, v in (raw[section] or {}).items():
                    if hasattr(target, k):
                        setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
