"""Cluster API endpoint.

This is the thin FastAPI adapter. It parses the JSON snapshot + view state,
hands it to the clustering session and returns GeoJSON for the map layer.
"""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from geocluster.core.models import ViewState, records_to_geojson

router = APIRouter(prefix="/api/v1")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(content={"error": message}, status_code=status_code)


@router.post("/clusters")
async def post_clusters(request: Request) -> JSONResponse:
    """Cluster a snapshot of sensor readings for one view.

    Body::

        {
          "consumer_id": "map-1",            # optional, enables debounce/cancel
          "points": [{"id", "lat", "lon", "value", "timestamp"?}, ...],
          "view": {"zoom": 5, "bounding_box": {...}?, "max_clusters": 50?}
        }

    Malformed points are dropped and reported in ``dropped_count``. A request
    superseded by a newer one from the same consumer gets a 409.
    """
    from geocluster.main import get_session

    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "invalid JSON")

    if not isinstance(body, dict):
        return _error(400, "body must be a JSON object")

    points = body.get("points", [])
    if not isinstance(points, list):
        return _error(400, "points must be a list")

    view_raw = body.get("view") or {}
    if not isinstance(view_raw, dict):
        return _error(400, "view must be an object")
    try:
        view = ViewState.from_dict(view_raw)
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        return _error(400, f"invalid view: {e}")

    session = get_session()
    consumer_id = body.get("consumer_id")
    if consumer_id:
        result = await session.submit(str(consumer_id), points, view)
        if result is None:
            return JSONResponse(content={"superseded": True}, status_code=409)
    else:
        result = await asyncio.to_thread(session.cluster, points, view)

    geojson = records_to_geojson(
        result.records,
        dropped_count=result.dropped_count,
        culled_count=result.culled_count,
        cell_degrees=result.cell_degrees,
    )
    return JSONResponse(content=geojson, media_type="application/geo+json")
