import asyncio

import httpx
import pytest

from mapsearch.core.geocoding import GeocodingError, ReverseGeocoder, parse_reverse_payload
from mapsearch.core.models import NO_PLACE, GeoPoint, PlaceName
from mapsearch.core.settings import Settings

KIGALI = GeoPoint(-1.9441, 30.0619)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_parse_reverse_payload_prefers_city_then_smaller_places():
    assert parse_reverse_payload({"address": {"city": "Kigali", "country": "Rwanda"}}) == PlaceName("Kigali", "Rwanda")
    assert parse_reverse_payload({"address": {"village": "Nyamata", "county": "Bugesera"}}) == PlaceName("Nyamata", None)
    assert parse_reverse_payload({"address": {"county": "Bugesera", "country": "Rwanda"}}).city == "Bugesera"


def test_parse_reverse_payload_without_address_is_no_result():
    assert parse_reverse_payload({"error": "Unable to geocode"}) == NO_PLACE
    with pytest.raises(GeocodingError):
        parse_reverse_payload(["not", "a", "dict"])


def test_reverse_sends_nominatim_query_and_headers():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"address": {"city": "Kigali", "country": "Rwanda"}})

    async def run() -> PlaceName:
        settings = Settings(nominatim_base_url="https://geo.test", geocoder_user_agent="mapsearch-tests/1.0")
        async with ReverseGeocoder(settings, transport=httpx.MockTransport(handler)) as geocoder:
            return await geocoder.reverse(KIGALI)

    place = asyncio.run(run())

    assert place == PlaceName("Kigali", "Rwanda")
    request = seen[0]
    assert request.url.path == "/reverse"
    assert request.url.params["lat"] == "-1.9441"
    assert request.url.params["lon"] == "30.0619"
    assert request.url.params["format"] == "json"
    assert request.headers["User-Agent"] == "mapsearch-tests/1.0"


def test_reverse_caches_nearby_coordinates():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200, json={"address": {"town": "Kigali"}})

    async def run() -> list[PlaceName]:
        async with ReverseGeocoder(transport=httpx.MockTransport(handler)) as geocoder:
            return await asyncio.gather(
                geocoder.reverse(GeoPoint(-1.94410, 30.06190)),
                geocoder.reverse(GeoPoint(-1.94412, 30.06188)),
                geocoder.reverse(GeoPoint(-1.94411, 30.06191)),
            )

    places = asyncio.run(run())

    assert calls["count"] == 1
    assert all(place.city == "Kigali" for place in places)


def test_reverse_raises_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async def run() -> None:
        async with ReverseGeocoder(transport=httpx.MockTransport(handler)) as geocoder:
            await geocoder.reverse(KIGALI)

    with pytest.raises(GeocodingError):
        asyncio.run(run())


def test_circuit_breaker_opens_after_failures_and_recovers():
    calls = {"count": 0, "fail": True}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["fail"]:
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, json={"address": {"city": "Huye"}})

    clock = FakeClock()
    settings = Settings(geocoder_max_failures=2, geocoder_cooldown_seconds=60, geocoder_min_interval_seconds=0)

    async def run() -> list[object]:
        results: list[object] = []
        async with ReverseGeocoder(settings, transport=httpx.MockTransport(handler), clock=clock) as geocoder:
            for lat in (-1.0, -2.0):
                try:
                    await geocoder.reverse(GeoPoint(lat, 30.0))
                except GeocodingError:
                    results.append("error")
            assert geocoder.circuit_open is True
            results.append(await geocoder.reverse(GeoPoint(-3.0, 30.0)))
            clock.now += 61
            calls["fail"] = False
            results.append(await geocoder.reverse(GeoPoint(-3.0, 30.0)))
            assert geocoder.circuit_open is False
        return results

    results = asyncio.run(run())

    assert results == ["error", "error", NO_PLACE, PlaceName("Huye", None)]
    assert calls["count"] == 3


def test_open_circuit_skips_lookups_already_queued():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ConnectError("down", request=request)

    settings = Settings(geocoder_max_failures=5, geocoder_min_interval_seconds=0)
    points = [GeoPoint(-1.0 - index * 0.01, 30.0) for index in range(20)]

    async def run() -> list[object]:
        async with ReverseGeocoder(
            settings, transport=httpx.MockTransport(handler), clock=FakeClock(), max_concurrency=1
        ) as geocoder:
            results = await asyncio.gather(*(geocoder.reverse(point) for point in points), return_exceptions=True)
            assert geocoder.circuit_open is True
        return results

    results = asyncio.run(run())

    assert calls["count"] == 5
    assert all(isinstance(result, GeocodingError) for result in results[:5])
    assert results[5:] == [NO_PLACE] * 15


def test_request_starts_are_spaced_by_min_interval():
    clock = FakeClock()
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.now += seconds

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"address": {"city": "Kigali"}})

    settings = Settings(geocoder_min_interval_seconds=1.0)
    points = [GeoPoint(-1.9, 30.0), GeoPoint(-2.0, 30.0), GeoPoint(-2.1, 30.0)]

    async def run() -> list[PlaceName]:
        async with ReverseGeocoder(
            settings, transport=httpx.MockTransport(handler), clock=clock, sleep=fake_sleep
        ) as geocoder:
            return await asyncio.gather(*(geocoder.reverse(point) for point in points))

    places = asyncio.run(run())

    assert all(place.city == "Kigali" for place in places)
    assert sleeps == [1.0, 1.0]
    assert clock.now == 1002.0
