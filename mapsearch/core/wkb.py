from __future__ import annotations

import struct
from typing import Any

from mapsearch.core.models import GeoPoint


MIN_POINT_HEX_LENGTH = 50
X_HEX_OFFSET = 18
Y_HEX_OFFSET = 34
DOUBLE_HEX_LENGTH = 16


def decode_wkb_point(hex_value: Any) -> GeoPoint | None:
    """
    Decode a little-endian 2D WKB point (hex encoded) into a GeoPoint.

    Only the two coordinate doubles are read, at fixed offsets; the byte order
    flag, geometry type and SRID header are not interpreted. Returns None for
    anything that does not decode to a valid coordinate.
    """
    if not isinstance(hex_value, str) or len(hex_value) < MIN_POINT_HEX_LENGTH:
        return None
    lng = _read_double_le(hex_value, X_HEX_OFFSET)
    lat = _read_double_le(hex_value, Y_HEX_OFFSET)
    if lng is None or lat is None:
        return None
    return GeoPoint.try_create(lat, lng)


def _read_double_le(hex_value: str, offset: int) -> float | None:
    chunk = hex_value[offset : offset + DOUBLE_HEX_LENGTH]
    try:
        raw = bytes.fromhex(chunk)
    except ValueError:
        return None
    if len(raw) != 8:
        return None
    return struct.unpack("<d", raw)[0]
