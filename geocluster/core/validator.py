"""Point validation — drops malformed readings before they reach the grid.

A bad reading from the live feed is never fatal: it is dropped and counted.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import replace
from numbers import Real
from typing import Any

import structlog

from geocluster.core.models import SensorPoint

log = structlog.get_logger()


def _finite(x: Any) -> bool:
    # bool is a Real subclass but never a coordinate or a reading.
    return isinstance(x, Real) and not isinstance(x, bool) and math.isfinite(x)


def _coerce(raw: SensorPoint | Mapping[str, Any]) -> SensorPoint | None:
    if isinstance(raw, SensorPoint):
        return raw
    if isinstance(raw, Mapping):
        try:
            return SensorPoint.from_dict(raw)
        except (KeyError, TypeError):
            return None
    return None


def is_valid(point: SensorPoint) -> bool:
    """Check a single point's id, coordinates and reading."""
    if not isinstance(point.id, str) or not point.id:
        return False
    if not (_finite(point.lat) and _finite(point.lon) and _finite(point.value)):
        return False
    return -90.0 <= point.lat <= 90.0 and -180.0 <= point.lon <= 180.0


def _clean_timestamp(point: SensorPoint) -> SensorPoint:
    """Blank out a timestamp that is not a finite number.

    The timestamp is display only, so a bad one costs the point its recency
    label, not its reading.
    """
    if point.timestamp is None or _finite(point.timestamp):
        return point
    return replace(point, timestamp=None)


def validate_points(
    raw_points: Iterable[SensorPoint | Mapping[str, Any]],
) -> tuple[list[SensorPoint], int]:
    """Return (valid_points, dropped_count).

    Duplicate ids keep the first valid occurrence. The input is not mutated.
    """
    valid: list[SensorPoint] = []
    seen: set[str] = set()
    dropped = 0

    for raw in raw_points:
        point = _coerce(raw)
        if point is None or not is_valid(point) or point.id in seen:
            dropped += 1
            continue
        seen.add(point.id)
        valid.append(_clean_timestamp(point))

    if dropped:
        log.debug("points_dropped", dropped=dropped, kept=len(valid))
    return valid, dropped
