"""Clustering session — runs the engine for many consumers at pan/zoom rate.

A consumer is one map view. Every viewport tick or feed update re-submits
the whole snapshot; only the most recent submission per consumer is ever
delivered:

- Debounce: a submit waits ``debounce_seconds`` first. If a newer submit
  for the same consumer arrives meanwhile, the older one returns None
  without running the engine.
- Cancellation: the engine runs in a worker thread. If a newer submit
  arrives while it runs, the older result is discarded (None).

The generation bookkeeping lives on the event loop; ``submit`` and
``cancel`` must be called from one loop. ``cluster`` is thread-safe.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from geocluster.config import EngineConfig
from geocluster.core.engine import ClusterResult, cluster_points
from geocluster.core.models import SensorPoint, ViewState
from geocluster.core.stats import ClusteringStats

log = structlog.get_logger()

DEFAULT_DEBOUNCE_SECONDS = 0.03


class ClusteringSession:
    """Orchestrates engine runs, coalescing superseded requests per consumer."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        stats: ClusteringStats | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._config = config or EngineConfig()
        self._stats = stats or ClusteringStats()
        self._debounce = max(0.0, debounce_seconds)
        # Globally increasing, so a forgotten consumer can never reuse a number.
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def stats(self) -> ClusteringStats:
        return self._stats

    def cluster(
        self,
        points: Iterable[SensorPoint | Mapping[str, Any]],
        view: ViewState,
    ) -> ClusterResult:
        """Run the engine synchronously for one snapshot and record stats."""
        result = cluster_points(points, view, self._config)
        clustered = result.point_count
        self._stats.record_run(
            points=clustered + result.dropped_count + result.culled_count,
            clustered=clustered,
            dropped=result.dropped_count,
            culled=result.culled_count,
            clusters=len(result.records),
            duration_ms=result.duration_ms,
            capped=result.merged,
            coarsened=result.coarsened,
        )
        return result

    def _is_current(self, consumer_id: str, generation: int) -> bool:
        return self._latest.get(consumer_id) == generation

    def _discard(self, consumer_id: str, generation: int, stage: str) -> None:
        self._stats.record_superseded(consumer_id)
        log.debug("cluster_superseded", consumer=consumer_id,
                  generation=generation, stage=stage)

    async def submit(
        self,
        consumer_id: str,
        points: Iterable[SensorPoint | Mapping[str, Any]],
        view: ViewState,
    ) -> ClusterResult | None:
        """Cluster a snapshot for a consumer off the event loop.

        Returns None if a newer submit (or ``cancel``) for the same consumer
        superseded this one.
        """
        generation = next(self._counter)
        self._latest[consumer_id] = generation
        self._stats.record_submit(consumer_id)

        if self._debounce:
            await asyncio.sleep(self._debounce)
        if not self._is_current(consumer_id, generation):
            self._discard(consumer_id, generation, "debounce")
            return None

        try:
            result = await asyncio.to_thread(self.cluster, points, view)
        except Exception:
            log.error("cluster_failed", consumer=consumer_id,
                      generation=generation, exc_info=True)
            self._stats.record_error()
            if self._is_current(consumer_id, generation):
                del self._latest[consumer_id]
            raise

        if not self._is_current(consumer_id, generation):
            self._discard(consumer_id, generation, "compute")
            return None

        del self._latest[consumer_id]
        return result

    def cancel(self, consumer_id: str) -> None:
        """Invalidate anything in flight for a consumer."""
        if self._latest.pop(consumer_id, None) is not None:
            log.debug("cluster_cancelled", consumer=consumer_id)

    def in_flight(self) -> int:
        return len(self._latest)
