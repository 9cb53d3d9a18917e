#!/usr/bin/env python3
"""geocluster live-feed simulator.

Generates a field of radiation sensors with drifting dose rates and a few
hotspots, then plays the role of one or more dashboard map views: every
tick it pans/zooms the viewport and posts the current snapshot to the
cluster endpoint. Reports latency and how many requests were superseded.

Usage:
    # 2 map views, 10,000 sensors around Fukushima for 30 seconds
    python -m tools.simulator.simulate --server http://localhost:8000 --views 2 --sensors 10000

    # Cap the number of markers per view
    python -m tools.simulator.simulate --server http://localhost:8000 --max-clusters 50

    # Fast panning to exercise debounce/cancellation
    python -m tools.simulator.simulate --server http://localhost:8000 --ticks-per-second 30
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import random
import statistics
import time
import uuid
from dataclasses import dataclass, field

import httpx


@dataclass
class SimSensor:
    sensor_id: str
    lat: float
    lon: float
    dose_usv_h: float
    hotspot: bool = False


@dataclass
class SimView:
    consumer_id: str
    lat: float
    lon: float
    zoom: float
    delivered: int = 0
    superseded: int = 0
    errors: int = 0
    latencies_ms: list[float] = field(default_factory=list)


def make_sensors(count: int, center: tuple[float, float], radius_km: float,
                 hotspot_ratio: float) -> list[SimSensor]:
    """Scatter sensors around a center; a small share reads high."""
    center_lat, center_lon = center
    sensors = []
    for _ in range(count):
        angle = random.uniform(0, 2 * math.pi)
        dist_km = radius_km * math.sqrt(random.random())
        lat = center_lat + (dist_km / 111.0) * math.cos(angle)
        lon = center_lon + (dist_km / (111.0 * math.cos(math.radians(center_lat)))) * math.sin(angle)
        hotspot = random.random() < hotspot_ratio
        sensors.append(SimSensor(
            sensor_id=str(uuid.uuid4()),
            lat=max(-90.0, min(90.0, lat)),
            lon=max(-180.0, min(180.0, lon)),
            dose_usv_h=random.uniform(2.0, 8.0) if hotspot else random.uniform(0.05, 0.2),
            hotspot=hotspot,
        ))
    return sensors


def drift_readings(sensors: list[SimSensor]) -> None:
    """Random-walk every reading, as the live feed would deliver them."""
    for s in sensors:
        step = s.dose_usv_h * random.uniform(-0.05, 0.05)
        s.dose_usv_h = max(0.01, s.dose_usv_h + step)


def move_view(view: SimView) -> None:
    """Pan a little and occasionally zoom in or out."""
    span = 180.0 / (2 ** view.zoom)
    view.lat = max(-85.0, min(85.0, view.lat + random.uniform(-0.1, 0.1) * span))
    view.lon = ((view.lon + random.uniform(-0.1, 0.1) * span + 180.0) % 360.0) - 180.0
    if random.random() < 0.2:
        view.zoom = max(0.0, min(18.0, view.zoom + random.choice([-1.0, -0.5, 0.5, 1.0])))


def make_payload(view: SimView, sensors: list[SimSensor], max_clusters: int | None) -> dict:
    half_lat = 90.0 / (2 ** view.zoom)
    half_lon = 180.0 / (2 ** view.zoom)
    now_ms = int(time.time() * 1000)
    view_state: dict = {
        "zoom": view.zoom,
        "bounding_box": {
            "min_lat": max(-90.0, view.lat - half_lat),
            "max_lat": min(90.0, view.lat + half_lat),
            "min_lon": max(-180.0, view.lon - half_lon),
            "max_lon": min(180.0, view.lon + half_lon),
        },
    }
    if max_clusters is not None:
        view_state["max_clusters"] = max_clusters
    return {
        "consumer_id": view.consumer_id,
        "points": [
            {"id": s.sensor_id, "lat": s.lat, "lon": s.lon,
             "value": round(s.dose_usv_h, 4), "timestamp": now_ms}
            for s in sensors
        ],
        "view": view_state,
    }


async def post_snapshot(client: httpx.AsyncClient, server_url: str, view: SimView,
                        payload: dict) -> None:
    started = time.perf_counter()
    try:
        resp = await client.post(
            f"{server_url}/api/v1/clusters",
            content=json.dumps(payload),
            headers={"content-type": "application/json"},
        )
    except httpx.RequestError:
        view.errors += 1
        return

    if resp.status_code == 200:
        view.delivered += 1
        view.latencies_ms.append((time.perf_counter() - started) * 1000)
    elif resp.status_code == 409:
        view.superseded += 1
    else:
        view.errors += 1


async def run_view(
    client: httpx.AsyncClient,
    view: SimView,
    sensors: list[SimSensor],
    server_url: str,
    ticks_per_second: float,
    duration_seconds: float,
    max_clusters: int | None,
) -> None:
    """Simulate a single map view re-requesting clusters on every tick."""
    interval = 1.0 / ticks_per_second
    end_time = time.monotonic() + duration_seconds
    pending: set[asyncio.Task] = set()

    while time.monotonic() < end_time:
        move_view(view)
        payload = make_payload(view, sensors, max_clusters)
        # Fire and forget: a fast-panning view does not wait for the previous answer.
        task = asyncio.create_task(post_snapshot(client, server_url, view, payload))
        pending.add(task)
        task.add_done_callback(pending.discard)
        await asyncio.sleep(interval)

    if pending:
        await asyncio.gather(*pending)


async def feed_loop(sensors: list[SimSensor], duration_seconds: float,
                    interval_seconds: float) -> None:
    end_time = time.monotonic() + duration_seconds
    while time.monotonic() < end_time:
        await asyncio.sleep(interval_seconds)
        drift_readings(sensors)


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    sensors = make_sensors(args.sensors, args.center, args.radius_km, args.hotspot_ratio)
    center_lat, center_lon = args.center
    views = [
        SimView(consumer_id=f"view-{i}", lat=center_lat, lon=center_lon, zoom=args.zoom)
        for i in range(args.views)
    ]

    print(f"Starting simulation: {args.sensors} sensors, {args.views} map views")
    print(f"  Center: {center_lat:.4f}, {center_lon:.4f}")
    print(f"  Radius: {args.radius_km} km")
    print(f"  Duration: {args.duration}s at {args.ticks_per_second} ticks/s")
    print(f"  Max clusters: {args.max_clusters}")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()

    async with httpx.AsyncClient(timeout=10.0) as client:
        tasks = [
            run_view(client, view, sensors, args.server, args.ticks_per_second,
                     args.duration, args.max_clusters)
            for view in views
        ]
        tasks.append(feed_loop(sensors, args.duration, args.feed_interval))
        await asyncio.gather(*tasks)

        elapsed = time.monotonic() - start
        delivered = sum(v.delivered for v in views)
        superseded = sum(v.superseded for v in views)
        errors = sum(v.errors for v in views)
        latencies = [ms for v in views for ms in v.latencies_ms]

        print(f"\nSimulation complete in {elapsed:.1f}s")
        print(f"  Delivered: {delivered}")
        print(f"  Superseded: {superseded}")
        print(f"  Errors: {errors}")
        if latencies:
            print(f"  Latency median: {statistics.median(latencies):.1f} ms")
            print(f"  Latency max: {max(latencies):.1f} ms")

        # Check server stats
        try:
            resp = await client.get(f"{args.server}/api/v1/stats")
        except httpx.RequestError:
            return
        if resp.status_code == 200:
            stats = resp.json()
            print("\nServer stats:")
            print(f"  Requests: {stats['requests']}")
            print(f"  Points dropped: {stats['points_dropped']}")
            print(f"  Points culled: {stats['points_culled']}")
            print(f"  Superseded: {stats['superseded']}")
            print(f"  Max duration: {stats['max_duration_ms']} ms")


def main():
    parser = argparse.ArgumentParser(description="geocluster live-feed simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--sensors", type=int, default=10_000, help="Number of simulated sensors")
    parser.add_argument("--views", type=int, default=1, help="Number of simulated map views")
    parser.add_argument("--duration", type=int, default=30, help="Simulation duration in seconds")
    parser.add_argument("--ticks-per-second", type=float, default=10,
                        help="Viewport updates per second per view")
    parser.add_argument("--feed-interval", type=float, default=5.0,
                        help="Seconds between live-feed reading updates")
    parser.add_argument("--center", type=str, default="37.421,141.033",
                        help="Center lat,lon (default: Fukushima Daiichi)")
    parser.add_argument("--radius-km", type=float, default=80.0, help="Scatter radius in km")
    parser.add_argument("--zoom", type=float, default=6.0, help="Initial zoom level")
    parser.add_argument("--max-clusters", type=int, default=None, help="Cluster cap per view")
    parser.add_argument("--hotspot-ratio", type=float, default=0.01,
                        help="Share of sensors reading high (default: 0.01)")

    args = parser.parse_args()

    # Parse center
    lat, lon = args.center.split(",")
    args.center = (float(lat), float(lon))

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
