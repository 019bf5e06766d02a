import asyncio

from mapsearch.core.enrichment import ImageCache, LocationCache, enrich_locations, load_listing_images
from mapsearch.core.models import GeoPoint, PlaceName, ResolvedLocation


class FakeGeocoder:
    def __init__(self, failing: set[GeoPoint] | None = None) -> None:
        self.failing = failing or set()
        self.calls: list[GeoPoint] = []

    async def reverse(self, point: GeoPoint) -> PlaceName:
        self.calls.append(point)
        await asyncio.sleep(0)
        if point in self.failing:
            raise RuntimeError("nominatim down")
        return PlaceName(city=f"city-{point.lat}", country="Rwanda")


class RetiringGeocoder:
    """Simulates the listing set being replaced while lookups are in flight."""

    def __init__(self, cache: LocationCache) -> None:
        self.cache = cache

    async def reverse(self, point: GeoPoint) -> PlaceName:
        self.cache.retire()
        return PlaceName(city="Kigali", country="Rwanda")


def test_enrich_isolates_failures_per_listing():
    bad = GeoPoint(-2.0, 30.0)
    resolved = {
        "a": ResolvedLocation(point=GeoPoint(-1.0, 30.0)),
        "b": ResolvedLocation(point=bad),
        "c": ResolvedLocation(point=GeoPoint(-3.0, 30.0)),
    }
    cache = LocationCache(generation=1)

    committed = asyncio.run(enrich_locations(resolved, cache, FakeGeocoder(failing={bad})))

    assert list(committed) == ["a", "b", "c"]
    assert cache.get("a").city == "city--1.0"
    assert cache.get("b") == ResolvedLocation(point=bad, city=None, country=None)
    assert cache.get("c").country == "Rwanda"


def test_enrich_never_re_requests_cached_listings():
    resolved = {"a": ResolvedLocation(point=GeoPoint(-1.0, 30.0))}
    cache = LocationCache(generation=1)
    geocoder = FakeGeocoder()

    asyncio.run(enrich_locations(resolved, cache, geocoder))
    second = asyncio.run(enrich_locations(resolved, cache, geocoder))

    assert len(geocoder.calls) == 1
    assert second == {}


def test_enrich_skips_network_for_unlocated_listings():
    resolved = {
        "city": ResolvedLocation(city="Musanze"),
        "none": ResolvedLocation(),
    }
    cache = LocationCache(generation=1)
    geocoder = FakeGeocoder()

    asyncio.run(enrich_locations(resolved, cache, geocoder))

    assert geocoder.calls == []
    assert cache.get("city").label == "Musanze"
    assert cache.get("none").label == "Unknown"


def test_enrich_respects_limit():
    resolved = {str(i): ResolvedLocation(point=GeoPoint(float(i), 30.0)) for i in range(10)}
    cache = LocationCache(generation=1)

    asyncio.run(enrich_locations(resolved, cache, FakeGeocoder(), limit=8))

    assert len(cache) == 8
    assert "8" not in cache


def test_enrich_drops_results_for_retired_generation():
    resolved = {"a": ResolvedLocation(point=GeoPoint(-1.0, 30.0))}
    cache = LocationCache(generation=4)

    committed = asyncio.run(enrich_locations(resolved, cache, RetiringGeocoder(cache)))

    assert committed == {}
    assert cache.get("a") is None


def test_generation_cache_rejects_mismatched_generation_and_rewrites():
    cache = LocationCache(generation=2)
    first = ResolvedLocation(city="Kigali")
    assert cache.put("a", first, generation=1) is False
    assert cache.put("a", first, generation=2) is True
    assert cache.put("a", ResolvedLocation(city="Huye"), generation=2) is False
    assert cache.get("a") is first


def test_load_listing_images_tolerates_failures():
    def fetch_images(listing_id: str) -> list[str]:
        if listing_id == "broken":
            raise ConnectionError("storage unavailable")
        return [f"https://img.test/{listing_id}.jpg", ""]

    cache = ImageCache(generation=1)
    committed = asyncio.run(load_listing_images(["a", "broken", "a"], cache, fetch_images))

    assert committed == {"a": ["https://img.test/a.jpg"], "broken": []}
    assert cache.get("broken") == []
