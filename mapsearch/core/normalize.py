from __future__ import annotations

import math
from typing import Any

from mapsearch.core.models import Listing


def listing_from_record(record: dict[str, Any]) -> Listing | None:
    """
    Build a Listing from a host product record.

    Location fields are kept raw; they are classified later, once, by the
    location resolver.
    """
    if not isinstance(record, dict):
        return None
    raw_id = record.get("id")
    if raw_id is None or str(raw_id).strip() == "":
        return None
    currency = record.get("base_currency") or record.get("currency")
    return Listing(
        id=str(raw_id),
        title=record.get("title") or record.get("name"),
        price_per_day=_safe_float(record.get("base_price_per_day", record.get("price_per_day"))),
        currency=str(currency) if currency else "USD",
        location=record.get("location"),
        geometry=record.get("geometry"),
        images=_image_urls(record.get("images")),
    )


def _image_urls(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    urls: list[str] = []
    for item in value:
        if isinstance(item, str) and item:
            urls.append(item)
        elif isinstance(item, dict) and isinstance(item.get("image_url"), str) and item["image_url"]:
            urls.append(item["image_url"])
    return urls


def _safe_float(value: Any) -> float | None:
    try:
        number = float(value) if value is not None else None
    except (TypeError, ValueError, OverflowError):
        return None
    if number is None or not math.isfinite(number):
        return None
    return number
