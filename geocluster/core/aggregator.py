"""Cluster aggregation — reduces each occupied grid cell to one record.

The representative value of an aggregate is the maximum member reading,
never the mean: a single hot sensor inside a cluster of normal ones must
still show up on the alerting map.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from geocluster.core.models import (
    AggregateCluster,
    ClusterRecord,
    SensorPoint,
    SingletonCluster,
    cluster_id_for,
)


def _latest(timestamps: Iterable[int | None]) -> int | None:
    present = [t for t in timestamps if t is not None]
    return max(present) if present else None


def aggregate_cell(members: list[SensorPoint]) -> ClusterRecord:
    """Build the record for one non-empty cell."""
    if len(members) == 1:
        return SingletonCluster(members[0])

    # fsum keeps the centroid independent of member order. Dividing each
    # reading first keeps the mean finite for readings near the float limit.
    n = len(members)
    member_ids = tuple(sorted(p.id for p in members))
    return AggregateCluster(
        cluster_id=cluster_id_for(member_ids),
        lat=math.fsum(p.lat for p in members) / n,
        lon=math.fsum(p.lon for p in members) / n,
        member_count=n,
        representative_value=max(p.value for p in members),
        member_ids=member_ids,
        mean_value=math.fsum(p.value / n for p in members),
        latest_timestamp=_latest(p.timestamp for p in members),
    )


def aggregate(cells: dict[tuple[int, int], list[SensorPoint]]) -> list[ClusterRecord]:
    return [aggregate_cell(members) for members in cells.values() if members]
