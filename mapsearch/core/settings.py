from __future__ import annotations

import os
from dataclasses import dataclass


DEFAULT_NOMINATIM_BASE_URL = "https://nominatim.openstreetmap.org"
DEFAULT_TILE_URL_TEMPLATE = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
DEFAULT_TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'


@dataclass(slots=True)
class Settings:
    nominatim_base_url: str = DEFAULT_NOMINATIM_BASE_URL
    geocoder_user_agent: str = "mapsearch/0.1"
    geocoder_accept_language: str = "en-US,en;q=0.9"
    geocoder_timeout_seconds: float = 10.0
    geocoder_max_failures: int = 5
    geocoder_cooldown_seconds: float = 60.0
    geocoder_min_interval_seconds: float = 1.0
    default_center_lat: float = -1.9441  # Kigali
    default_center_lng: float = 30.0619
    default_zoom: int = 10
    default_radius_km: float = 25.0
    mobile_breakpoint_px: int = 768
    enrich_limit: int | None = 8
    tile_url_template: str = DEFAULT_TILE_URL_TEMPLATE
    tile_attribution: str = DEFAULT_TILE_ATTRIBUTION

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        enrich_limit = _env_int("ENRICH_LIMIT", defaults.enrich_limit or 0)
        return cls(
            nominatim_base_url=_env_str("NOMINATIM_BASE_URL", defaults.nominatim_base_url).rstrip("/"),
            geocoder_user_agent=_env_str("GEOCODER_USER_AGENT", defaults.geocoder_user_agent),
            geocoder_accept_language=_env_str("GEOCODER_ACCEPT_LANGUAGE", defaults.geocoder_accept_language),
            geocoder_timeout_seconds=_env_float("GEOCODER_TIMEOUT_SECONDS", defaults.geocoder_timeout_seconds),
            geocoder_max_failures=_env_int("GEOCODER_MAX_FAILURES", defaults.geocoder_max_failures),
            geocoder_cooldown_seconds=_env_float("GEOCODER_COOLDOWN_SECONDS", defaults.geocoder_cooldown_seconds),
            geocoder_min_interval_seconds=_env_float(
                "GEOCODER_MIN_INTERVAL_SECONDS", defaults.geocoder_min_interval_seconds
            ),
            default_center_lat=_env_float("DEFAULT_CENTER_LAT", defaults.default_center_lat),
            default_center_lng=_env_float("DEFAULT_CENTER_LNG", defaults.default_center_lng),
            default_zoom=_env_int("DEFAULT_ZOOM", defaults.default_zoom),
            default_radius_km=_env_float("DEFAULT_RADIUS_KM", defaults.default_radius_km),
            mobile_breakpoint_px=_env_int("MOBILE_BREAKPOINT_PX", defaults.mobile_breakpoint_px),
            # ENRICH_LIMIT=0 disables the cap.
            enrich_limit=enrich_limit if enrich_limit > 0 else None,
            tile_url_template=_env_str("TILE_URL_TEMPLATE", defaults.tile_url_template),
            tile_attribution=_env_str("TILE_ATTRIBUTION", defaults.tile_attribution),
        )


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except (TypeError, ValueError):
        return default
