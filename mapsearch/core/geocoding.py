from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

from mapsearch.core.models import NO_PLACE, GeoPoint, PlaceName
from mapsearch.core.settings import Settings


LOGGER = logging.getLogger(__name__)

CITY_KEYS = ("city", "town", "village", "hamlet", "county", "state")
CACHE_PRECISION = 3


class GeocodingError(Exception):
    """Reverse-geocoding request failed (transport, HTTP status or payload)."""


class ReverseGeocoder:
    """
    Nominatim-compatible reverse geocoder.

    Results are cached per rounded coordinate, so nearby listings share one
    request. After `max_failures` consecutive failures the circuit opens and
    lookups return an empty PlaceName until the cooldown elapses, including
    lookups already queued behind the concurrency cap. Request starts are spaced
    by `geocoder_min_interval_seconds`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_concurrency: int = 4,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or Settings()
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self._pace_lock = asyncio.Lock()
        self._next_request_at = float("-inf")
        self._client: httpx.AsyncClient | None = None
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._cache: dict[tuple[float, float], PlaceName] = {}
        self._inflight: dict[tuple[float, float], asyncio.Task[PlaceName]] = {}
        self._failures = 0
        self._last_failure_at = 0.0

    async def __aenter__(self) -> ReverseGeocoder:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def circuit_open(self) -> bool:
        if self._failures < self.settings.geocoder_max_failures:
            return False
        return (self._clock() - self._last_failure_at) < self.settings.geocoder_cooldown_seconds

    async def reverse(self, point: GeoPoint) -> PlaceName:
        key = _cache_key(point)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        if self.circuit_open:
            LOGGER.warning("Geocoding circuit open, skipping lookup lat=%s lng=%s", point.lat, point.lng)
            return NO_PLACE

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup(key, point))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _lookup(self, key: tuple[float, float], point: GeoPoint) -> PlaceName:
        async with self._semaphore:
            if not await self._reserve_request_slot():
                LOGGER.warning("Geocoding circuit open, dropping queued lookup lat=%s lng=%s", point.lat, point.lng)
                return NO_PLACE
            try:
                payload = await self._request(point)
                place = parse_reverse_payload(payload)
            except Exception as exc:  # noqa: BLE001
                self._failures += 1
                self._last_failure_at = self._clock()
                LOGGER.warning(
                    "Reverse geocoding failed (%s/%s) lat=%s lng=%s error=%s",
                    self._failures,
                    self.settings.geocoder_max_failures,
                    point.lat,
                    point.lng,
                    exc,
                )
                raise GeocodingError(str(exc)) from exc
        self._failures = 0
        self._cache[key] = place
        return place

    async def _reserve_request_slot(self) -> bool:
        """Wait for the next request start and return False if the circuit opened meanwhile."""
        async with self._pace_lock:
            if self.circuit_open:
                return False
            interval = self.settings.geocoder_min_interval_seconds
            if interval > 0:
                wait = self._next_request_at - self._clock()
                if wait > 0:
                    await self._sleep(wait)
                    if self.circuit_open:
                        return False
                self._next_request_at = max(self._clock(), self._next_request_at) + interval
            return True

    async def _request(self, point: GeoPoint) -> Any:
        client = self._get_client()
        response = await client.get(
            "/reverse",
            params={
                "lat": point.lat,
                "lon": point.lng,
                "format": "json",
                "zoom": 10,
                "addressdetails": 1,
            },
        )
        response.raise_for_status()
        return response.json()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.nominatim_base_url,
                timeout=self.settings.geocoder_timeout_seconds,
                headers={
                    "User-Agent": self.settings.geocoder_user_agent,
                    "Accept-Language": self.settings.geocoder_accept_language,
                },
                transport=self._transport,
            )
        return self._client


def parse_reverse_payload(payload: Any) -> PlaceName:
    if not isinstance(payload, dict):
        raise GeocodingError(f"Unexpected reverse payload type: {type(payload).__name__}")
    address = payload.get("address")
    if not isinstance(address, dict):
        return NO_PLACE
    city = next((address[key] for key in CITY_KEYS if isinstance(address.get(key), str) and address[key]), None)
    country = address.get("country") if isinstance(address.get("country"), str) else None
    return PlaceName(city=city, country=country or None)


def _cache_key(point: GeoPoint) -> tuple[float, float]:
    return (round(point.lat, CACHE_PRECISION), round(point.lng, CACHE_PRECISION))
