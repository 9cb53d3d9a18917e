"""Spatial grid — buckets points into zoom-scaled lat/lon cells.

Cell size halves with every whole zoom level:

    cell_degrees = base_cell_degrees / 2 ** floor(zoom)

clamped to [min_cell_degrees, max_cell_degrees]. Fractional zooms share
the grid of their whole level, so the grid at zoom z+1 always nests inside
the grid at zoom z and the number of occupied cells never shrinks as the
user zooms in.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

import structlog

from geocluster.core.models import BoundingBox, SensorPoint

log = structlog.get_logger()

CellKey = tuple[int, int]

# Coarsening stops once a cell spans the whole globe.
_WORLD_DEGREES = 360.0

# Level bound when no usable min clamp is configured.
_MAX_LEVEL = 64


def cell_size_for_zoom(
    zoom: float,
    base_cell_degrees: float,
    min_cell_degrees: float,
    max_cell_degrees: float,
) -> float:
    """Cell edge length in degrees for a zoom level."""
    level = math.floor(zoom) if math.isfinite(zoom) and zoom > 0 else 0
    # Past the level where the min clamp bites every zoom yields the same cell.
    if 0 < min_cell_degrees < base_cell_degrees:
        level = min(level, math.ceil(math.log2(base_cell_degrees / min_cell_degrees)))
    else:
        level = min(level, _MAX_LEVEL)
    size = math.ldexp(base_cell_degrees, -level)
    return min(max(size, min_cell_degrees), max_cell_degrees)


def cell_key(lat: float, lon: float, cell_degrees: float) -> CellKey:
    return (math.floor(lat / cell_degrees), math.floor(lon / cell_degrees))


def cull(points: Iterable[SensorPoint], bbox: BoundingBox | None) -> tuple[list[SensorPoint], int]:
    """Drop points outside the viewport. Returns (in_view, culled_count)."""
    if bbox is None:
        return list(points), 0
    in_view: list[SensorPoint] = []
    culled = 0
    for p in points:
        if bbox.contains(p.lat, p.lon):
            in_view.append(p)
        else:
            culled += 1
    return in_view, culled


def bucket(points: Iterable[SensorPoint], cell_degrees: float) -> dict[CellKey, list[SensorPoint]]:
    """Single O(n) pass assigning each point to its cell."""
    cells: dict[CellKey, list[SensorPoint]] = {}
    for p in points:
        cells.setdefault(cell_key(p.lat, p.lon, cell_degrees), []).append(p)
    return cells


def build_grid(
    points: list[SensorPoint],
    cell_degrees: float,
    max_cells: int,
) -> tuple[dict[CellKey, list[SensorPoint]], float]:
    """Bucket points, doubling the cell size until at most ``max_cells`` are occupied.

    Returns (cells, cell_degrees actually used).
    """
    cells = bucket(points, cell_degrees)
    requested = cell_degrees
    while len(cells) > max_cells and cell_degrees < _WORLD_DEGREES:
        cell_degrees *= 2
        cells = bucket(points, cell_degrees)

    if cell_degrees != requested:
        log.info("grid_coarsened",
                 requested_degrees=requested,
                 cell_degrees=cell_degrees,
                 cells=len(cells),
                 max_cells=max_cells)
    return cells, cell_degrees
