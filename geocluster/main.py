"""geocluster service — main entry point.

This is the only file that knows about concrete implementations.
It wires together the config, the clustering session and the API layer.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TextIO

import structlog
from fastapi import FastAPI

from geocluster.api.clusters import router as clusters_router
from geocluster.api.monitoring import router as monitoring_router
from geocluster.config import AppConfig, load_config
from geocluster.core.session import ClusteringSession
from geocluster.core.stats import ClusteringStats

log = structlog.get_logger()

VERSION = "0.1.0"

# Module-level singletons (set during startup)
_session: ClusteringSession | None = None
_stats: ClusteringStats | None = None
_config: AppConfig | None = None
_log_file: TextIO | None = None


def get_session() -> ClusteringSession:
    assert _session is not None, "Server not initialized"
    return _session


def get_stats() -> ClusteringStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    global _log_file

    _close_log_file()
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    logger_factory = None
    if config.logging.file:
        _log_file = open(config.logging.file, "a")
        logger_factory = structlog.WriteLoggerFactory(file=_log_file)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory or structlog.PrintLoggerFactory(),
    )


def _close_log_file() -> None:
    global _log_file

    if _log_file is not None:
        # Later events go to stdout rather than a closed handle.
        structlog.configure(logger_factory=structlog.PrintLoggerFactory())
        _log_file.close()
        _log_file = None


def build_components(config: AppConfig) -> tuple[ClusteringSession, ClusteringStats]:
    stats = ClusteringStats(active_window_seconds=config.session.active_window_seconds)
    session = ClusteringSession(
        config=config.engine,
        stats=stats,
        debounce_seconds=config.session.debounce_ms / 1000,
    )
    return session, stats


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _session, _stats, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             base_cell_degrees=_config.engine.base_cell_degrees,
             debounce_ms=_config.session.debounce_ms)

    _session, _stats = build_components(_config)

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    log.info("server_stopped", in_flight=_session.in_flight())
    _close_log_file()


app = FastAPI(
    title="geocluster",
    description="Zoom-aware clustering of live sensor readings",
    version=VERSION,
    lifespan=lifespan,
)

app.include_router(clusters_router)
app.include_router(monitoring_router)


def run() -> None:
    import uvicorn

    config = load_config()
    uvicorn.run("geocluster.main:app", host=config.server.host, port=config.server.port)
