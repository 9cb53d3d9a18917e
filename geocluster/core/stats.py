"""Clustering statistics and active-consumer tracking.

Tracks in-memory counters and a sliding window of consumers (dashboard
views) that requested clusters recently. No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class ConsumerActivity:
    """Tracks a single consumer's recent activity."""
    last_seen: float          # time.monotonic() timestamp
    requests: int = 0
    superseded: int = 0


class ClusteringStats:
    """Thread-safe clustering statistics.

    Engine runs happen on worker threads, so every mutation takes the lock.
    A consumer counts as active if it submitted a request within
    ``active_window_seconds`` (default 120s).
    """

    def __init__(self, active_window_seconds: float = 120.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.requests: int = 0
        self.points_received: int = 0
        self.points_clustered: int = 0
        self.points_dropped: int = 0
        self.points_culled: int = 0
        self.clusters_emitted: int = 0
        self.capped_requests: int = 0
        self.coarsened_requests: int = 0
        self.superseded: int = 0
        self.errors: int = 0
        self.last_duration_ms: float = 0.0
        self.max_duration_ms: float = 0.0

        # consumer_id → ConsumerActivity
        self._consumers: dict[str, ConsumerActivity] = {}

    def record_submit(self, consumer_id: str) -> None:
        """Record that a consumer submitted a clustering request."""
        now = time.monotonic()
        with self._lock:
            if consumer_id in self._consumers:
                consumer = self._consumers[consumer_id]
                consumer.last_seen = now
                consumer.requests += 1
            else:
                self._consumers[consumer_id] = ConsumerActivity(last_seen=now, requests=1)

    def record_run(
        self,
        *,
        points: int,
        clustered: int,
        dropped: int,
        culled: int,
        clusters: int,
        duration_ms: float,
        capped: bool = False,
        coarsened: bool = False,
    ) -> None:
        """Record one completed engine run."""
        with self._lock:
            self.requests += 1
            self.points_received += points
            self.points_clustered += clustered
            self.points_dropped += dropped
            self.points_culled += culled
            self.clusters_emitted += clusters
            if capped:
                self.capped_requests += 1
            if coarsened:
                self.coarsened_requests += 1
            self.last_duration_ms = duration_ms
            if duration_ms > self.max_duration_ms:
                self.max_duration_ms = duration_ms

    def record_superseded(self, consumer_id: str | None = None) -> None:
        with self._lock:
            self.superseded += 1
            if consumer_id is not None and consumer_id in self._consumers:
                self._consumers[consumer_id].superseded += 1

    def record_error(self) -> None:
        with self._lock:
            self.errors += 1

    def _prune_stale_consumers(self, now: float) -> None:
        """Remove consumers not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [cid for cid, c in self._consumers.items() if c.last_seen < cutoff]
        for cid in stale:
            del self._consumers[cid]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_consumers(now_mono)

            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "requests": self.requests,
                "points_received": self.points_received,
                "points_clustered": self.points_clustered,
                "points_dropped": self.points_dropped,
                "points_culled": self.points_culled,
                "clusters_emitted": self.clusters_emitted,
                "capped_requests": self.capped_requests,
                "coarsened_requests": self.coarsened_requests,
                "superseded": self.superseded,
                "errors": self.errors,
                "last_duration_ms": round(self.last_duration_ms, 2),
                "max_duration_ms": round(self.max_duration_ms, 2),
                "active_consumers": {
                    "total": len(self._consumers),
                    "window_seconds": self._active_window,
                },
            }
