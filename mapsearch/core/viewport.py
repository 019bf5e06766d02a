from __future__ import annotations

import math
from dataclasses import dataclass, replace

from mapsearch.core.models import GeoPoint
from mapsearch.core.proximity import haversine_km


RADIUS_DAMPING = 0.7
MIN_SEARCH_RADIUS_KM = 5.0
MAX_SEARCH_RADIUS_KM = 50.0

TILE_SIZE = 256
MAX_MERCATOR_LAT = 85.0511287798


def estimate_search_radius(center: GeoPoint, north_east: GeoPoint, south_west: GeoPoint) -> int:
    """
    Radius for a "search this area" action.

    The farther corner distance over-covers the visible area, so it is damped
    and then clamped to [5, 50] km.
    """
    raw = max(haversine_km(center, north_east), haversine_km(center, south_west))
    damped = raw * RADIUS_DAMPING
    clamped = min(max(damped, MIN_SEARCH_RADIUS_KM), MAX_SEARCH_RADIUS_KM)
    return math.floor(clamped + 0.5)


def radius_for_accuracy(radius_km: float, accuracy_meters: float | None) -> float:
    """Widen the search radius when a geolocation fix is imprecise."""
    if not accuracy_meters:
        return radius_km
    if accuracy_meters > 1000:
        return max(radius_km, 10.0)
    if accuracy_meters > 100:
        return max(radius_km, 5.0)
    return radius_km


@dataclass(frozen=True, slots=True)
class WebMercatorViewport:
    """Spherical Mercator map view (256 px tiles), projecting to container pixels."""

    center: GeoPoint
    zoom: float
    width_px: int
    height_px: int

    @property
    def world_size(self) -> float:
        return TILE_SIZE * (2 ** self.zoom)

    def project(self, point: GeoPoint) -> tuple[float, float]:
        x, y = self._to_world(point)
        cx, cy = self._to_world(self.center)
        return (x - cx + self.width_px / 2, y - cy + self.height_px / 2)

    def unproject(self, x: float, y: float) -> GeoPoint:
        cx, cy = self._to_world(self.center)
        return self._from_world(cx + x - self.width_px / 2, cy + y - self.height_px / 2)

    def bounds(self) -> tuple[GeoPoint, GeoPoint]:
        """(north_east, south_west) corners of the visible area."""
        north_east = self.unproject(self.width_px, 0)
        south_west = self.unproject(0, self.height_px)
        return north_east, south_west

    def pan_to(self, center: GeoPoint) -> WebMercatorViewport:
        return replace(self, center=center)

    def zoom_to(self, zoom: float, center: GeoPoint | None = None) -> WebMercatorViewport:
        return replace(self, zoom=zoom, center=center or self.center)

    def resize(self, width_px: int, height_px: int) -> WebMercatorViewport:
        return replace(self, width_px=width_px, height_px=height_px)

    def _to_world(self, point: GeoPoint) -> tuple[float, float]:
        lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, point.lat))
        sin_lat = math.sin(math.radians(lat))
        x = (point.lng + 180.0) / 360.0 * self.world_size
        y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * self.world_size
        return x, y

    def _from_world(self, x: float, y: float) -> GeoPoint:
        lng = x / self.world_size * 360.0 - 180.0
        n = math.pi * (1 - 2 * y / self.world_size)
        lat = math.degrees(math.atan(math.sinh(n)))
        return GeoPoint(lat=max(-90.0, min(90.0, lat)), lng=max(-180.0, min(180.0, lng)))
