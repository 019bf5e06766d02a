from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from mapsearch.core.models import (
    UNRESOLVED,
    CityOnly,
    GeoJsonCoords,
    GeoPoint,
    LatLng,
    Listing,
    LocationSource,
    ResolvedLocation,
    Wkb,
)
from mapsearch.core.wkb import decode_wkb_point


LAT_KEYS = ("lat", "latitude", "y")
LNG_KEYS = ("lng", "longitude", "x")


def classify_location(raw: Any) -> LocationSource | None:
    """
    Pick the single LocationSource variant for a raw upstream value.

    GeoJSON coordinates take precedence over lat/lng-style keys when both
    are present on the same object.
    """
    if isinstance(raw, str):
        return Wkb(raw)
    if not isinstance(raw, Mapping):
        return None

    coordinates = _coordinates_pair(raw.get("coordinates"))
    if coordinates is not None:
        return GeoJsonCoords(coordinates)

    lat = _first_number(raw, LAT_KEYS)
    lng = _first_number(raw, LNG_KEYS)
    if lat is not None and lng is not None:
        return LatLng(lat=lat, lng=lng)

    city = _clean_text(raw.get("city"))
    if city:
        return CityOnly(city=city, country=_clean_text(raw.get("country")))
    return None


def point_from_source(source: LocationSource | None) -> GeoPoint | None:
    if isinstance(source, Wkb):
        return decode_wkb_point(source.hex_value)
    if isinstance(source, LatLng):
        return GeoPoint.try_create(source.lat, source.lng)
    if isinstance(source, GeoJsonCoords):
        # GeoJSON order is [lng, lat, ...].
        return GeoPoint.try_create(source.coordinates[1], source.coordinates[0])
    return None


def resolve_location(raw: Any) -> ResolvedLocation:
    source = classify_location(raw)
    point = point_from_source(source)
    if point is not None:
        return ResolvedLocation(point=point)
    if isinstance(source, CityOnly):
        return ResolvedLocation(city=source.city, country=source.country)
    if isinstance(source, (LatLng, GeoJsonCoords)):
        # Out-of-range coordinates; fall back to any city on the same object.
        city = _clean_text(raw.get("city"))
        if city:
            return ResolvedLocation(city=city, country=_clean_text(raw.get("country")))
    return UNRESOLVED


def resolve_listing_location(listing: Listing | Mapping[str, Any]) -> ResolvedLocation:
    """Resolve from `location`, then `geometry`; the first located result wins."""
    if isinstance(listing, Listing):
        candidates = (listing.location, listing.geometry)
    elif isinstance(listing, Mapping):
        candidates = (listing.get("location"), listing.get("geometry"))
    else:
        return UNRESOLVED

    fallback = UNRESOLVED
    for raw in candidates:
        if raw is None:
            continue
        resolved = resolve_location(raw)
        if resolved.point is not None:
            return resolved
        if fallback is UNRESOLVED and resolved.city:
            fallback = resolved
    return fallback


def _first_number(raw: Mapping[str, Any], keys: Sequence[str]) -> float | None:
    for key in keys:
        value = _as_number(raw.get(key))
        if value is not None:
            return value
    return None


def _coordinates_pair(value: Any) -> tuple[float, ...] | None:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence) or len(value) < 2:
        return None
    lng = _as_number(value[0])
    lat = _as_number(value[1])
    if lng is None or lat is None:
        return None
    return (lng, lat)


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _clean_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
