from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from mapsearch.core.models import Listing
from mapsearch.core.normalize import listing_from_record


class ListingSource(ABC):
    source_name: str

    @abstractmethod
    def fetch(self) -> list[dict[str, Any]]:
        """Fetch raw listing records from source."""

    @abstractmethod
    def fetch_images(self, listing_id: str) -> list[str]:
        """Fetch image URLs for one listing."""

    def normalize(self, raw_item: dict[str, Any]) -> Listing | None:
        return listing_from_record(raw_item)
