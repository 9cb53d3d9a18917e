"""Tests for ClusteringStats and active consumer tracking."""

from __future__ import annotations

import time

from geocluster.core.stats import ClusteringStats


def test_initial_stats():
    stats = ClusteringStats()
    snap = stats.snapshot()
    assert snap["requests"] == 0
    assert snap["superseded"] == 0
    assert snap["active_consumers"]["total"] == 0


def test_record_run():
    stats = ClusteringStats()
    stats.record_run(points=100, clustered=90, dropped=4, culled=6,
                     clusters=12, duration_ms=3.5, capped=True)
    stats.record_run(points=10, clustered=10, dropped=0, culled=0,
                     clusters=10, duration_ms=1.25, coarsened=True)

    snap = stats.snapshot()
    assert snap["requests"] == 2
    assert snap["points_received"] == 110
    assert snap["points_clustered"] == 100
    assert snap["points_dropped"] == 4
    assert snap["points_culled"] == 6
    assert snap["clusters_emitted"] == 22
    assert snap["capped_requests"] == 1
    assert snap["coarsened_requests"] == 1
    assert snap["last_duration_ms"] == 1.25
    assert snap["max_duration_ms"] == 3.5


def test_superseded_counted_per_consumer():
    stats = ClusteringStats()
    stats.record_submit("map-1")
    stats.record_submit("map-1")
    stats.record_superseded("map-1")
    stats.record_superseded("unknown")

    snap = stats.snapshot()
    assert snap["superseded"] == 2
    assert snap["active_consumers"]["total"] == 1


def test_stale_consumers_pruned():
    """Consumers older than the active window should be pruned from stats."""
    stats = ClusteringStats(active_window_seconds=0.1)
    stats.record_submit("map-1")

    snap = stats.snapshot()
    assert snap["active_consumers"]["total"] == 1

    time.sleep(0.15)

    snap = stats.snapshot()
    assert snap["active_consumers"]["total"] == 0


def test_error_counter():
    stats = ClusteringStats()
    stats.record_error()
    stats.record_error()
    assert stats.snapshot()["errors"] == 2
