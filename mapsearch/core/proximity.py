from __future__ import annotations

from collections.abc import Mapping
from math import asin, cos, radians, sin, sqrt

from mapsearch.core.models import GeoPoint, SearchArea


EARTH_RADIUS_KM = 6371.0


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    dlat = radians(b.lat - a.lat)
    dlng = radians(b.lng - a.lng)
    h = sin(dlat / 2) ** 2 + cos(radians(a.lat)) * cos(radians(b.lat)) * sin(dlng / 2) ** 2
    # Float drift can push h slightly outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * asin(sqrt(h))


def filter_within_radius(
    points: Mapping[str, GeoPoint | None],
    center: GeoPoint,
    radius_km: float,
) -> list[str]:
    """Ids whose point lies within radius_km of center (inclusive), in input order."""
    return [
        listing_id
        for listing_id, point in points.items()
        if point is not None and haversine_km(center, point) <= radius_km
    ]


class ProximityFilter:
    """
    Radius filter with distances memoized per listing for the current area.

    The memo is keyed by (listing id, center, radius) and is dropped as soon
    as a different center or radius is requested.
    """

    def __init__(self) -> None:
        self._area_key: tuple[float, float, float] | None = None
        self._distances: dict[str, float] = {}

    def distance_km(self, listing_id: str, point: GeoPoint, area: SearchArea) -> float:
        area_key = (area.center.lat, area.center.lng, area.radius_km)
        if area_key != self._area_key:
            self._area_key = area_key
            self._distances = {}
        cached = self._distances.get(listing_id)
        if cached is None:
            cached = haversine_km(area.center, point)
            self._distances[listing_id] = cached
        return cached

    def filter(self, points: Mapping[str, GeoPoint | None], area: SearchArea | None) -> list[str]:
        if area is None:
            return [listing_id for listing_id, point in points.items() if point is not None]
        return [
            listing_id
            for listing_id, point in points.items()
            if point is not None and self.distance_km(listing_id, point, area) <= area.radius_km
        ]

    def invalidate(self) -> None:
        self._area_key = None
        self._distances = {}

    @property
    def cached_count(self) -> int:
        return len(self._distances)
