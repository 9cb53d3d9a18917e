"""Clustering engine — readings + view state in, render-ready clusters out.

Pure and synchronous: no shared state, no I/O, safe to run on any thread.
Every call builds its grid from scratch and keeps nothing afterwards.
"""

from __future__ import annotations

import math
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from geocluster.config import EngineConfig
from geocluster.core.aggregator import aggregate
from geocluster.core.grid import build_grid, cell_size_for_zoom, cull
from geocluster.core.models import ClusterRecord, SensorPoint, ViewState
from geocluster.core.reducer import reduce_to_cap
from geocluster.core.validator import validate_points

log = structlog.get_logger()


@dataclass(frozen=True)
class ClusterResult:
    records: list[ClusterRecord] = field(default_factory=list)
    dropped_count: int = 0
    culled_count: int = 0
    cell_degrees: float = 0.0
    merged: bool = False
    coarsened: bool = False
    duration_ms: float = 0.0

    @property
    def point_count(self) -> int:
        return sum(r.member_count for r in self.records)


def normalize_view(view: ViewState, config: EngineConfig) -> tuple[float, int | None]:
    """Clamp a view's zoom and cap into usable values. Returns (zoom, cap)."""
    zoom = view.zoom if isinstance(view.zoom, (int, float)) and math.isfinite(view.zoom) else 0.0
    zoom = max(0.0, float(zoom))

    cap = view.max_clusters if view.max_clusters is not None else config.default_max_clusters
    if isinstance(cap, float) and cap == math.inf:
        cap = None  # unbounded
    if cap is not None:
        try:
            cap = max(1, int(cap))
        except (TypeError, ValueError, OverflowError):
            cap = 1
    return zoom, cap


def cluster_points(
    points: Iterable[SensorPoint | Mapping[str, Any]],
    view: ViewState,
    config: EngineConfig | None = None,
) -> ClusterResult:
    """Cluster sensor readings for one view.

    Malformed points are dropped and counted, never raised. Output is sorted
    by centroid latitude, then longitude, then id, so the same input always
    yields the same list.
    """
    config = config or EngineConfig()
    started = time.perf_counter()
    zoom, cap = normalize_view(view, config)

    valid, dropped = validate_points(points)
    in_view, culled = cull(valid, view.bounding_box)

    cell_degrees = cell_size_for_zoom(
        zoom,
        config.base_cell_degrees,
        config.min_cell_degrees,
        config.max_cell_degrees,
    )
    max_cells = config.max_cells
    if cap is not None:
        max_cells = min(max_cells, max(cap, config.max_merge_candidates))
    cells, grid_degrees = build_grid(in_view, cell_degrees, max_cells)
    coarsened = grid_degrees != cell_degrees

    records = aggregate(cells)
    merged = False
    if cap is not None and len(records) > cap:
        records = reduce_to_cap(records, cap)
        merged = True

    records.sort(key=lambda r: r.sort_key)
    duration_ms = (time.perf_counter() - started) * 1000

    log.debug("clusters_computed",
              points=len(in_view),
              dropped=dropped,
              culled=culled,
              clusters=len(records),
              cell_degrees=grid_degrees,
              merged=merged,
              duration_ms=round(duration_ms, 2))

    return ClusterResult(
        records=records,
        dropped_count=dropped,
        culled_count=culled,
        cell_degrees=grid_degrees,
        merged=merged,
        coarsened=coarsened,
        duration_ms=duration_ms,
    )
