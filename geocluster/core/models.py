"""geocluster — core data models.

Plain frozen dataclasses with no framework dependencies. Raw feed dicts and
HTTP payloads are converted to these at the boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class SensorPoint:
    id: str
    lat: float
    lon: float
    value: float
    timestamp: int | None = None  # epoch milliseconds, display only

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SensorPoint:
        """Build a point from a feed mapping. Raises on missing keys."""
        return cls(
            id=data["id"],
            lat=data["lat"],
            lon=data["lon"],
            value=data["value"],
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BoundingBox:
        return cls(
            min_lat=float(data["min_lat"]),
            max_lat=float(data["max_lat"]),
            min_lon=float(data["min_lon"]),
            max_lon=float(data["max_lon"]),
        )

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_lon > self.max_lon

    def contains(self, lat: float, lon: float) -> bool:
        lo_lat, hi_lat = sorted((self.min_lat, self.max_lat))
        if not lo_lat <= lat <= hi_lat:
            return False
        if self.crosses_antimeridian:
            return lon >= self.min_lon or lon <= self.max_lon
        return self.min_lon <= lon <= self.max_lon


@dataclass(frozen=True)
class ViewState:
    zoom: float = 0.0
    bounding_box: BoundingBox | None = None
    max_clusters: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ViewState:
        bbox = data.get("bounding_box")
        max_clusters = data.get("max_clusters")
        return cls(
            zoom=float(data.get("zoom", 0.0)),
            bounding_box=BoundingBox.from_dict(bbox) if bbox else None,
            max_clusters=_parse_cap(max_clusters),
        )


def _parse_cap(raw: Any) -> int | None:
    """An unbounded cap means no cap; NaN is rejected."""
    if raw is None:
        return None
    cap = float(raw)
    if math.isnan(cap):
        raise ValueError("max_clusters must be a number")
    if cap == math.inf:
        return None
    if cap == -math.inf:
        return 1
    return int(cap)


@dataclass(frozen=True)
class SingletonCluster:
    """A cluster of exactly one point, passed through unchanged."""

    point: SensorPoint

    @property
    def id(self) -> str:
        return self.point.id

    @property
    def lat(self) -> float:
        return self.point.lat

    @property
    def lon(self) -> float:
        return self.point.lon

    @property
    def member_count(self) -> int:
        return 1

    @property
    def representative_value(self) -> float:
        return self.point.value

    @property
    def member_ids(self) -> tuple[str, ...]:
        return (self.point.id,)

    @property
    def sort_key(self) -> tuple[float, float, str]:
        return (self.point.lat, self.point.lon, self.point.id)

    def to_geojson_feature(self) -> dict:
        return {
            "type": "Feature",
            "id": self.point.id,
            "geometry": {
                "type": "Point",
                "coordinates": [self.point.lon, self.point.lat],
            },
            "properties": {
                "kind": "point",
                "member_count": 1,
                "value": self.point.value,
                "timestamp": self.point.timestamp,
            },
        }


@dataclass(frozen=True)
class AggregateCluster:
    """Several points reduced to one marker.

    ``representative_value`` is the worst (highest) member reading. The mean
    is carried for display only.
    """

    cluster_id: str
    lat: float
    lon: float
    member_count: int
    representative_value: float
    member_ids: tuple[str, ...]
    mean_value: float
    latest_timestamp: int | None = None

    @property
    def id(self) -> str:
        return self.cluster_id

    @property
    def sort_key(self) -> tuple[float, float, str]:
        return (self.lat, self.lon, self.cluster_id)

    def to_geojson_feature(self) -> dict:
        return {
            "type": "Feature",
            "id": self.cluster_id,
            "geometry": {
                "type": "Point",
                "coordinates": [self.lon, self.lat],
            },
            "properties": {
                "kind": "cluster",
                "member_count": self.member_count,
                "representative_value": self.representative_value,
                "mean_value": self.mean_value,
                "latest_timestamp": self.latest_timestamp,
                "member_ids": list(self.member_ids),
            },
        }


ClusterRecord = Union[SingletonCluster, AggregateCluster]


def cluster_id_for(member_ids: tuple[str, ...]) -> str:
    """Stable renderer key for an aggregate: derived from its smallest member id."""
    return f"cluster-{min(member_ids)}"


def records_to_geojson(records: list[ClusterRecord], **members: Any) -> dict:
    """Convert cluster records to a GeoJSON FeatureCollection.

    Extra keyword arguments become foreign members of the collection.
    """
    collection = {
        "type": "FeatureCollection",
        "features": [r.to_geojson_feature() for r in records],
    }
    collection.update(members)
    return collection
