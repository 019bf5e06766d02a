from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mapsearch.collectors.base import ListingSource


class JsonFileListingSource(ListingSource):
    """
    Listings from a JSON export: either a list of records or an object with a
    `data` list (the shape returned by the products API).
    """

    source_name = "jsonfile"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._records: list[dict[str, Any]] | None = None

    def fetch(self) -> list[dict[str, Any]]:
        if self._records is None:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if isinstance(payload, dict):
                payload = payload.get("data") or []
            self._records = [item for item in payload if isinstance(item, dict)] if isinstance(payload, list) else []
        return self._records

    def fetch_images(self, listing_id: str) -> list[str]:
        for record in self.fetch():
            if str(record.get("id")) == listing_id:
                listing = self.normalize(record)
                return listing.images if listing else []
        return []
