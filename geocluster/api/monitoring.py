"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from geocluster.main import VERSION, get_session, get_stats

    snapshot = get_stats().snapshot()
    return {
        "status": "ok",
        "version": VERSION,
        "uptime_seconds": snapshot["uptime_seconds"],
        "in_flight": get_session().in_flight(),
    }


@router.get("/stats")
async def stats() -> dict:
    """Detailed clustering statistics.

    The ``active_consumers`` section counts map views that submitted a
    request within the last N seconds (configurable window).
    """
    from geocluster.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Engine parameters for the dashboard.

    The map layer uses these to pick its own debounce interval and to
    predict which zoom levels change the grid.
    """
    from geocluster.main import get_config

    config = get_config()
    return {
        "base_cell_degrees": config.engine.base_cell_degrees,
        "min_cell_degrees": config.engine.min_cell_degrees,
        "max_cell_degrees": config.engine.max_cell_degrees,
        "max_cells": config.engine.max_cells,
        "default_max_clusters": config.engine.default_max_clusters,
        "debounce_ms": config.session.debounce_ms,
    }
