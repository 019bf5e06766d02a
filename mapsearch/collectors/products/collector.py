from __future__ import annotations

from typing import Any

from mapsearch.collectors.base import ListingSource
from mapsearch.core.supabase_repo import SupabaseRepo


class ProductsListingSource(ListingSource):
    """Listings from the Supabase `products` / `product_images` tables."""

    source_name = "products"

    def __init__(self, repo: SupabaseRepo | None = None, max_items: int | None = None) -> None:
        self.repo = repo or SupabaseRepo()
        self.max_items = max_items

    def fetch(self) -> list[dict[str, Any]]:
        return self.repo.get_available_products(limit=self.max_items)

    def fetch_images(self, listing_id: str) -> list[str]:
        rows = self.repo.get_product_images(listing_id)
        # Primary image first, then by sort order as returned.
        rows = sorted(rows, key=lambda row: not row.get("is_primary"))
        return [row["image_url"] for row in rows if isinstance(row.get("image_url"), str) and row["image_url"]]
