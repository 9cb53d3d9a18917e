"""Tests for the cluster and monitoring API endpoints."""

from __future__ import annotations

import json

import pytest


def _payload(**view) -> dict:
    points = [
        {"id": "s1", "lat": 10.0, "lon": 10.0, "value": 1.0, "timestamp": 1_000},
        {"id": "s2", "lat": 10.01, "lon": 10.0, "value": 2.0},
        {"id": "s3", "lat": 9.99, "lon": 10.0, "value": 3.0},
        {"id": "s4", "lat": 10.0, "lon": 10.01, "value": 9.5},
        {"id": "s5", "lat": 10.0, "lon": 9.99, "value": 0.5},
        {"id": "far", "lat": 80.0, "lon": 80.0, "value": 4.0},
    ]
    return {"points": points, "view": {"zoom": 2, **view}}


async def _post(client, body) -> object:
    return await client.post(
        "/api/v1/clusters",
        content=json.dumps(body),
        headers={"content-type": "application/json"},
    )


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "uptime_seconds" in data
    assert data["in_flight"] == 0


@pytest.mark.asyncio
async def test_stats_empty(client):
    resp = await client.get("/api/v1/stats")
    assert resp.status_code == 200
    data = resp.json()
    assert data["requests"] == 0
    assert data["active_consumers"]["total"] == 0


@pytest.mark.asyncio
async def test_config_endpoint(client):
    resp = await client.get("/api/v1/config")
    assert resp.status_code == 200
    data = resp.json()
    assert data["base_cell_degrees"] == 90.0
    assert "debounce_ms" in data
    assert "max_cells" in data


@pytest.mark.asyncio
async def test_cluster_snapshot(client):
    resp = await _post(client, _payload())
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/geo+json")

    data = resp.json()
    assert data["type"] == "FeatureCollection"
    assert data["dropped_count"] == 0
    assert data["culled_count"] == 0
    group, lone = data["features"]
    assert group["properties"]["member_count"] == 5
    assert group["properties"]["representative_value"] == 9.5
    assert lone["id"] == "far"


@pytest.mark.asyncio
async def test_cluster_with_cap_and_consumer(client):
    body = _payload(max_clusters=1)
    body["consumer_id"] = "map-1"
    resp = await _post(client, body)
    assert resp.status_code == 200
    (only,) = resp.json()["features"]
    assert only["properties"]["member_count"] == 6

    stats = (await client.get("/api/v1/stats")).json()
    assert stats["requests"] == 1
    assert stats["capped_requests"] == 1
    assert stats["active_consumers"]["total"] == 1


@pytest.mark.asyncio
async def test_malformed_points_dropped(client):
    body = _payload()
    body["points"].append({"id": "bad", "lat": 200.0, "lon": 0.0, "value": 1.0})
    body["points"].append({"lat": 1.0})
    body["points"].append(17)
    resp = await _post(client, body)
    assert resp.status_code == 200
    assert resp.json()["dropped_count"] == 3


@pytest.mark.asyncio
async def test_bounding_box_culls(client):
    body = _payload(bounding_box={"min_lat": 0, "max_lat": 20, "min_lon": 0, "max_lon": 20})
    resp = await _post(client, body)
    data = resp.json()
    assert data["culled_count"] == 1
    assert len(data["features"]) == 1


@pytest.mark.asyncio
async def test_invalid_json(client):
    resp = await client.post(
        "/api/v1/clusters",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid JSON"


@pytest.mark.asyncio
async def test_points_must_be_list(client):
    resp = await _post(client, {"points": {"id": "a"}, "view": {"zoom": 1}})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_invalid_view(client):
    resp = await _post(client, {"points": [], "view": {"zoom": "far away"}})
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("invalid view")

    resp = await _post(client, {"points": [], "view": {"zoom": 1, "bounding_box": {"min_lat": 0}}})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unbounded_cap_is_no_cap(client):
    body = json.dumps(_payload(zoom=20)).replace('"zoom": 20', '"zoom": 20, "max_clusters": 1e400')
    resp = await client.post(
        "/api/v1/clusters",
        content=body,
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 200
    assert len(resp.json()["features"]) == 6


@pytest.mark.asyncio
async def test_nan_cap_rejected(client):
    resp = await _post(client, _payload(max_clusters=float("nan")))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_nan_timestamp_does_not_break_response(client):
    body = _payload(zoom=20)
    body["points"][1]["timestamp"] = float("nan")
    body["points"][2]["timestamp"] = "soon"
    resp = await _post(client, body)

    assert resp.status_code == 200
    features = {f["id"]: f for f in resp.json()["features"]}
    assert features["s1"]["properties"]["timestamp"] == 1_000
    assert features["s2"]["properties"]["timestamp"] is None
    assert features["s3"]["properties"]["timestamp"] is None
