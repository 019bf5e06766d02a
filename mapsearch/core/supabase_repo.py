from __future__ import annotations

import os
from typing import Any

from supabase import Client, create_client


class SupabaseRepo:
    def __init__(self, url: str | None = None, service_role_key: str | None = None) -> None:
        supabase_url = url or os.environ.get("SUPABASE_URL")
        supabase_key = service_role_key or os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required.")
        self.client: Client = create_client(supabase_url, supabase_key)

    def get_available_products(self, limit: int | None = None) -> list[dict[str, Any]]:
        query = (
            self.client.table("products")
            .select("id, title, name, base_price_per_day, base_currency, location, geometry")
            .eq("status", "active")
            .order("created_at", desc=True)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.execute().data or []

    def get_product_images(self, product_id: str) -> list[dict[str, Any]]:
        return (
            self.client.table("product_images")
            .select("image_url, is_primary, sort_order")
            .eq("product_id", product_id)
            .order("sort_order")
            .execute()
            .data
            or []
        )
