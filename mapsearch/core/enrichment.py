from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Generic, Protocol, TypeVar

from mapsearch.core.models import NO_PLACE, GeoPoint, PlaceName, ResolvedLocation


LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class PlaceLookup(Protocol):
    async def reverse(self, point: GeoPoint) -> PlaceName: ...


class GenerationCache(Generic[T]):
    """
    Per-listing cache scoped to one listing-set generation.

    Each key is written at most once. Once retired, writes are refused so that
    late async results from an old generation are dropped.
    """

    def __init__(self, generation: int) -> None:
        self.generation = generation
        self._entries: dict[str, T] = {}
        self._retired = False

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, listing_id: str) -> T | None:
        return self._entries.get(listing_id)

    def put(self, listing_id: str, value: T, generation: int) -> bool:
        if self._retired or generation != self.generation:
            LOGGER.debug(
                "Dropping stale result listing_id=%s issued_generation=%s cache_generation=%s",
                listing_id,
                generation,
                self.generation,
            )
            return False
        if listing_id in self._entries:
            return False
        self._entries[listing_id] = value
        return True

    def retire(self) -> None:
        self._retired = True

    @property
    def retired(self) -> bool:
        return self._retired

    def snapshot(self) -> dict[str, T]:
        return dict(self._entries)


class LocationCache(GenerationCache[ResolvedLocation]):
    pass


class ImageCache(GenerationCache[list[str]]):
    pass


async def enrich_locations(
    resolved: Mapping[str, ResolvedLocation],
    cache: LocationCache,
    geocoder: PlaceLookup,
    limit: int | None = None,
) -> dict[str, ResolvedLocation]:
    """
    Reverse-geocode located listings that have no cached place name yet.

    Lookups run concurrently and settle independently: a failed lookup
    commits `{city: None, country: None}` for that listing only. Returns the
    entries committed by this call.
    """
    generation = cache.generation
    items = list(resolved.items())
    if limit is not None:
        items = items[:limit]

    committed: dict[str, ResolvedLocation] = {}
    pending: list[tuple[str, GeoPoint]] = []
    for listing_id, location in items:
        if listing_id in cache:
            continue
        if location.point is None:
            if cache.put(listing_id, location, generation):
                committed[listing_id] = location
            continue
        pending.append((listing_id, location.point))

    if not pending:
        return committed

    results = await asyncio.gather(
        *(geocoder.reverse(point) for _, point in pending),
        return_exceptions=True,
    )
    for (listing_id, point), result in zip(pending, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            LOGGER.warning("Location enrichment failed listing_id=%s error=%s", listing_id, result)
            result = NO_PLACE
        location = ResolvedLocation(point=point, city=result.city, country=result.country)
        if cache.put(listing_id, location, generation):
            committed[listing_id] = location
    return committed


async def load_listing_images(
    listing_ids: Iterable[str],
    cache: ImageCache,
    fetch_images: Callable[[str], list[str]],
) -> dict[str, list[str]]:
    """Fetch images per listing in worker threads; failures fall back to []."""
    generation = cache.generation
    wanted = [listing_id for listing_id in dict.fromkeys(listing_ids) if listing_id not in cache]
    results = await asyncio.gather(
        *(asyncio.to_thread(fetch_images, listing_id) for listing_id in wanted),
        return_exceptions=True,
    )
    committed: dict[str, list[str]] = {}
    for listing_id, result in zip(wanted, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            LOGGER.warning("Image fetch failed listing_id=%s error=%s", listing_id, result)
            result = []
        if not isinstance(result, (list, tuple)):
            result = []
        images = [url for url in result if isinstance(url, str) and url]
        if cache.put(listing_id, images, generation):
            committed[listing_id] = images
    return committed
