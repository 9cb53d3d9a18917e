"""Cap reduction — greedy nearest-pair agglomeration down to a cluster cap.

Runs only when the caller set ``max_clusters`` and the grid produced more
clusters than that. Works on post-grid clusters (k), never on raw points
(n), so the O(k² log k) heap is affordable.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field

import structlog

from geocluster.core.models import (
    AggregateCluster,
    ClusterRecord,
    SingletonCluster,
    cluster_id_for,
)

log = structlog.get_logger()

SortKey = tuple[float, float, str]


@dataclass
class _Node:
    lat: float
    lon: float
    count: int
    max_value: float
    mean_value: float
    member_ids: tuple[str, ...]
    latest_timestamp: int | None
    # The untouched input record, until the node takes part in a merge.
    record: ClusterRecord | None = None
    sort_key: SortKey = field(init=False)

    def __post_init__(self) -> None:
        # Built once per node, every heap entry for the node reuses it.
        if self.record is not None:
            self.sort_key = self.record.sort_key
        else:
            self.sort_key = (self.lat, self.lon, cluster_id_for(self.member_ids))

    @classmethod
    def from_record(cls, record: ClusterRecord) -> _Node:
        if isinstance(record, SingletonCluster):
            p = record.point
            return cls(p.lat, p.lon, 1, p.value, p.value, (p.id,), p.timestamp, record)
        return cls(
            record.lat,
            record.lon,
            record.member_count,
            record.representative_value,
            record.mean_value,
            record.member_ids,
            record.latest_timestamp,
            record,
        )

    def merge(self, other: _Node) -> _Node:
        count = self.count + other.count
        # Weights sum to 1, so no intermediate exceeds the larger operand.
        w_self, w_other = self.count / count, other.count / count
        stamps = [t for t in (self.latest_timestamp, other.latest_timestamp) if t is not None]
        return _Node(
            lat=self.lat * w_self + other.lat * w_other,
            lon=self.lon * w_self + other.lon * w_other,
            count=count,
            max_value=max(self.max_value, other.max_value),
            mean_value=self.mean_value * w_self + other.mean_value * w_other,
            member_ids=tuple(sorted(self.member_ids + other.member_ids)),
            latest_timestamp=max(stamps) if stamps else None,
        )

    def to_record(self) -> ClusterRecord:
        if self.record is not None:
            return self.record
        return AggregateCluster(
            cluster_id=self.sort_key[2],
            lat=self.lat,
            lon=self.lon,
            member_count=self.count,
            representative_value=self.max_value,
            member_ids=self.member_ids,
            mean_value=self.mean_value,
            latest_timestamp=self.latest_timestamp,
        )


def _distance_sq(a: _Node, b: _Node) -> float:
    """Planar squared distance on lat/lon degrees."""
    return (a.lat - b.lat) ** 2 + (a.lon - b.lon) ** 2


def _pair_entry(nodes: list[_Node | None], i: int, j: int) -> tuple:
    a, b = nodes[i], nodes[j]
    ka, kb = a.sort_key, b.sort_key
    # Equal distances fall back to the lower combined canonical key.
    combined = (ka, kb) if ka <= kb else (kb, ka)
    return (_distance_sq(a, b), combined, i, j)


def reduce_to_cap(records: list[ClusterRecord], max_clusters: int) -> list[ClusterRecord]:
    """Merge the closest pair of clusters until at most ``max_clusters`` remain.

    Records that never take part in a merge are returned unchanged, so a
    singleton that survives stays a singleton.
    """
    cap = max(1, max_clusters)
    if len(records) <= cap:
        return list(records)

    nodes: list[_Node | None] = [_Node.from_record(r) for r in records]
    heap = [_pair_entry(nodes, i, j) for i in range(len(nodes)) for j in range(i + 1, len(nodes))]
    heapq.heapify(heap)

    alive = len(nodes)
    merges = 0
    while alive > cap and heap:
        _, _, i, j = heapq.heappop(heap)
        if nodes[i] is None or nodes[j] is None:
            continue  # stale pair
        merged = nodes[i].merge(nodes[j])
        nodes[i] = nodes[j] = None
        nodes.append(merged)
        alive -= 1
        merges += 1

        k = len(nodes) - 1
        for m in range(k):
            if nodes[m] is not None:
                heapq.heappush(heap, _pair_entry(nodes, m, k))

    log.debug("clusters_capped", before=len(records), after=alive, merges=merges, cap=cap)
    return [n.to_record() for n in nodes if n is not None]
