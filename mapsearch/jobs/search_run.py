from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from typing import Any

from mapsearch.collectors.base import ListingSource
from mapsearch.collectors.jsonfile.collector import JsonFileListingSource
from mapsearch.collectors.products.collector import ProductsListingSource
from mapsearch.core.geocoding import ReverseGeocoder
from mapsearch.core.listing_set import ListingStore
from mapsearch.core.map_state import MapViewStateController
from mapsearch.core.models import GeoPoint, Listing
from mapsearch.core.proximity import haversine_km
from mapsearch.core.settings import Settings
from mapsearch.core.viewport import WebMercatorViewport


LOGGER = logging.getLogger(__name__)


async def run_search(
    source: ListingSource,
    settings: Settings,
    lat: float | None = None,
    lng: float | None = None,
    radius_km: float | None = None,
    search_this_area: bool = False,
    zoom: float | None = None,
    width_px: int = 1280,
    height_px: int = 800,
    geocode: bool = True,
    images: bool = False,
    geocoder: ReverseGeocoder | None = None,
) -> list[dict[str, Any]]:
    raw_items = _fetch_with_retry(source.fetch, source_name=source.source_name)
    listings = _normalize_all(source, raw_items)
    LOGGER.info("Source=%s fetched=%s normalized=%s", source.source_name, len(raw_items), len(listings))

    store = ListingStore()
    listing_set = store.replace(listings)
    viewport = WebMercatorViewport(
        center=GeoPoint(settings.default_center_lat, settings.default_center_lng),
        zoom=zoom if zoom is not None else settings.default_zoom,
        width_px=width_px,
        height_px=height_px,
    )
    controller = MapViewStateController(listing_set, viewport, settings, width_px=width_px, height_px=height_px)
    if radius_km is not None:
        controller.set_radius_km(radius_km)

    if lat is not None and lng is not None:
        controller.select_location(lat, lng, controller.radius_km)
    elif search_this_area:
        controller.search_this_area()

    visible_ids = controller.visible_ids()
    if geocode and visible_ids:
        owned = geocoder is None
        geocoder = geocoder or ReverseGeocoder(settings)
        try:
            await listing_set.enrich(geocoder, visible_ids, limit=settings.enrich_limit)
        finally:
            if owned:
                await geocoder.aclose()
    if images and visible_ids:
        await listing_set.load_images(source.fetch_images, visible_ids)

    area = controller.search_area
    rows: list[dict[str, Any]] = []
    for marker in controller.markers():
        listing = listing_set.get(marker.id)
        rows.append(
            {
                "id": marker.id,
                "title": listing.title if listing else None,
                "price": f"{marker.currency} {marker.price_label}",
                "lat": marker.point.lat,
                "lng": marker.point.lng,
                "location": listing_set.label(marker.id),
                "distance_km": round(haversine_km(area.center, marker.point), 2) if area else None,
                "images": listing_set.images(marker.id) if images else [],
            }
        )
    unlocated = len(listing_set) - sum(1 for point in listing_set.points().values() if point is not None)
    LOGGER.info(
        "Search completed. visible=%s unlocated=%s radius_km=%s",
        len(rows),
        unlocated,
        area.radius_km if area else None,
    )
    return rows


def _normalize_all(source: ListingSource, raw_items: list[dict[str, Any]]) -> list[Listing]:
    by_id: dict[str, Listing] = {}
    for item in raw_items:
        listing = source.normalize(item)
        if listing is not None and listing.id not in by_id:
            by_id[listing.id] = listing
    return list(by_id.values())


def _fetch_with_retry(fetch_func: Any, source_name: str, max_attempts: int = 3) -> list[dict[str, Any]]:
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            result = fetch_func()
            return result if isinstance(result, list) else []
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            if attempt >= max_attempts:
                break
            wait_seconds = attempt * 2
            LOGGER.warning(
                "Source retry source=%s attempt=%s/%s wait=%ss error=%s",
                source_name,
                attempt,
                max_attempts,
                wait_seconds,
                exc,
            )
            time.sleep(wait_seconds)
    if last_error:
        raise last_error
    return []


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Search listings around a point and print map markers.")
    parser.add_argument("--input", help="JSON file with listing records (default: Supabase products).")
    parser.add_argument("--lat", type=float, help="Search center latitude.")
    parser.add_argument("--lng", type=float, help="Search center longitude.")
    parser.add_argument("--radius-km", type=float, help="Search radius in km.")
    parser.add_argument("--search-this-area", action="store_true", help="Derive the radius from the map viewport.")
    parser.add_argument("--zoom", type=float, help="Map zoom used for the viewport.")
    parser.add_argument("--width", type=int, default=1280, help="Map container width in px.")
    parser.add_argument("--height", type=int, default=800, help="Map container height in px.")
    parser.add_argument("--no-geocode", action="store_true", help="Skip reverse geocoding of place names.")
    parser.add_argument("--images", action="store_true", help="Fetch listing images.")
    args = parser.parse_args(argv)

    if (args.lat is None) != (args.lng is None):
        parser.error("--lat and --lng must be given together.")
    if args.lat is not None and GeoPoint.try_create(args.lat, args.lng) is None:
        parser.error("--lat must be within [-90, 90] and --lng within [-180, 180].")
    if args.radius_km is not None and not args.radius_km > 0:
        parser.error("--radius-km must be greater than 0.")

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    settings = Settings.from_env()
    source: ListingSource = JsonFileListingSource(args.input) if args.input else ProductsListingSource()
    rows = asyncio.run(
        run_search(
            source,
            settings,
            lat=args.lat,
            lng=args.lng,
            radius_km=args.radius_km,
            search_this_area=args.search_this_area,
            zoom=args.zoom,
            width_px=args.width,
            height_px=args.height,
            geocode=not args.no_geocode,
            images=args.images,
        )
    )
    for row in rows:
        print(json.dumps(row, ensure_ascii=False))


if __name__ == "__main__":
    main()
