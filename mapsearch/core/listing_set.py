from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from mapsearch.core.enrichment import ImageCache, LocationCache, PlaceLookup, enrich_locations, load_listing_images
from mapsearch.core.location import resolve_listing_location
from mapsearch.core.models import GeoPoint, Listing, ResolvedLocation


LOGGER = logging.getLogger(__name__)


class ListingSet:
    """
    One generation of search results.

    Locations are resolved lazily on first access. Place names and images
    live in caches scoped to this generation and are retired together with it.
    """

    def __init__(self, listings: Sequence[Listing], generation: int) -> None:
        self.generation = generation
        self.listings = list(listings)
        self._by_id = {listing.id: listing for listing in self.listings}
        self._resolved: dict[str, ResolvedLocation] = {}
        self.location_cache = LocationCache(generation)
        self.image_cache = ImageCache(generation)

    def __len__(self) -> int:
        return len(self.listings)

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._by_id

    def get(self, listing_id: str) -> Listing | None:
        return self._by_id.get(listing_id)

    @property
    def ids(self) -> list[str]:
        return [listing.id for listing in self.listings]

    @property
    def retired(self) -> bool:
        return self.location_cache.retired

    def resolved(self, listing_id: str) -> ResolvedLocation:
        location = self._resolved.get(listing_id)
        if location is None:
            listing = self._by_id.get(listing_id)
            location = resolve_listing_location(listing) if listing else ResolvedLocation()
            self._resolved[listing_id] = location
        return location

    def location(self, listing_id: str) -> ResolvedLocation:
        return self.location_cache.get(listing_id) or self.resolved(listing_id)

    def point(self, listing_id: str) -> GeoPoint | None:
        return self.resolved(listing_id).point

    def points(self) -> dict[str, GeoPoint | None]:
        return {listing.id: self.point(listing.id) for listing in self.listings}

    def label(self, listing_id: str) -> str:
        return self.location(listing_id).label

    def images(self, listing_id: str) -> list[str]:
        cached = self.image_cache.get(listing_id)
        if cached is not None:
            return cached
        listing = self._by_id.get(listing_id)
        return list(listing.images) if listing else []

    async def enrich(
        self,
        geocoder: PlaceLookup,
        listing_ids: Iterable[str] | None = None,
        limit: int | None = None,
    ) -> dict[str, ResolvedLocation]:
        wanted = list(listing_ids) if listing_ids is not None else self.ids
        resolved = {listing_id: self.resolved(listing_id) for listing_id in wanted if listing_id in self._by_id}
        committed = await enrich_locations(resolved, self.location_cache, geocoder, limit=limit)
        LOGGER.info("Enriched generation=%s requested=%s committed=%s", self.generation, len(resolved), len(committed))
        return committed

    async def load_images(
        self,
        fetch_images: Callable[[str], list[str]],
        listing_ids: Iterable[str] | None = None,
    ) -> dict[str, list[str]]:
        wanted = list(listing_ids) if listing_ids is not None else self.ids
        return await load_listing_images(wanted, self.image_cache, fetch_images)

    def retire(self) -> None:
        self.location_cache.retire()
        self.image_cache.retire()


class ListingStore:
    """Owns the current ListingSet and bumps the generation on every replace."""

    def __init__(self) -> None:
        self._generation = 0
        self.current = ListingSet([], self._generation)

    def replace(self, listings: Sequence[Listing]) -> ListingSet:
        self.current.retire()
        self._generation += 1
        self.current = ListingSet(listings, self._generation)
        LOGGER.info("Listing set replaced generation=%s listings=%s", self._generation, len(self.current))
        return self.current

    def teardown(self) -> None:
        self.current.retire()
