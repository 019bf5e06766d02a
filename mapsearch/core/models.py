from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not _is_valid_coordinate(self.lat, 90.0) or not _is_valid_coordinate(self.lng, 180.0):
            raise ValueError(f"Invalid coordinate lat={self.lat!r} lng={self.lng!r}")

    @classmethod
    def try_create(cls, lat: Any, lng: Any) -> GeoPoint | None:
        try:
            return cls(float(lat), float(lng))
        except (TypeError, ValueError, OverflowError):
            return None


@dataclass(frozen=True, slots=True)
class Wkb:
    hex_value: str


@dataclass(frozen=True, slots=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class GeoJsonCoords:
    coordinates: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class CityOnly:
    city: str
    country: str | None = None


LocationSource = Union[Wkb, LatLng, GeoJsonCoords, CityOnly]


@dataclass(frozen=True, slots=True)
class ResolvedLocation:
    point: GeoPoint | None = None
    city: str | None = None
    country: str | None = None

    @property
    def label(self) -> str:
        parts = [part for part in (self.city, self.country) if part]
        return ", ".join(parts) if parts else "Unknown"


UNRESOLVED = ResolvedLocation()


@dataclass(frozen=True, slots=True)
class PlaceName:
    city: str | None = None
    country: str | None = None


NO_PLACE = PlaceName()


@dataclass(frozen=True, slots=True)
class SearchArea:
    center: GeoPoint
    radius_km: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.radius_km) or self.radius_km <= 0:
            raise ValueError(f"radius_km must be > 0, got {self.radius_km!r}")


@dataclass(slots=True)
class Listing:
    id: str
    title: str | None = None
    price_per_day: float | None = None
    currency: str = "USD"
    location: Any = None
    geometry: Any = None
    images: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ListingMarker:
    id: str
    point: GeoPoint
    price_label: str
    currency: str
    selected: bool = False
    hovered: bool = False


class SheetMode(str, Enum):
    COLLAPSED = "collapsed"
    HALF = "half"
    EXPANDED = "expanded"


@dataclass(frozen=True, slots=True)
class BottomSheetState:
    height_px: float
    mode: SheetMode


def _is_valid_coordinate(value: Any, limit: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and -limit <= value <= limit
