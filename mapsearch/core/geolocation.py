from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from mapsearch.core.models import GeoPoint


LOGGER = logging.getLogger(__name__)

MANUAL_HINT = "select a location on the map manually."


class GeolocationErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


_MESSAGES = {
    GeolocationErrorKind.PERMISSION_DENIED: (
        "Unable to get your location. Location access was denied. "
        "Please enable location services and try again, or " + MANUAL_HINT
    ),
    GeolocationErrorKind.POSITION_UNAVAILABLE: (
        "Unable to get your location. Location information is unavailable. "
        "Please check your internet connection or " + MANUAL_HINT
    ),
    GeolocationErrorKind.TIMEOUT: (
        "Unable to get your location. Location request timed out. "
        "Please try again or " + MANUAL_HINT
    ),
    GeolocationErrorKind.UNSUPPORTED: (
        "Geolocation is not supported by your browser. Please " + MANUAL_HINT
    ),
    GeolocationErrorKind.UNKNOWN: (
        "Unable to get your location. An unknown error occurred. Please " + MANUAL_HINT
    ),
}

# W3C GeolocationPositionError codes.
_CODE_KINDS = {
    1: GeolocationErrorKind.PERMISSION_DENIED,
    2: GeolocationErrorKind.POSITION_UNAVAILABLE,
    3: GeolocationErrorKind.TIMEOUT,
}


class GeolocationError(Exception):
    def __init__(self, kind: GeolocationErrorKind, detail: str | None = None) -> None:
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail

    @classmethod
    def from_code(cls, code: int, detail: str | None = None) -> GeolocationError:
        return cls(_CODE_KINDS.get(code, GeolocationErrorKind.UNKNOWN), detail)

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind]


@dataclass(frozen=True, slots=True)
class GeolocationOptions:
    enable_high_accuracy: bool = True
    timeout_ms: int = 15_000
    maximum_age_ms: int = 300_000


@dataclass(frozen=True, slots=True)
class GeolocationFix:
    lat: float
    lng: float
    accuracy_meters: float | None = None

    @property
    def point(self) -> GeoPoint | None:
        return GeoPoint.try_create(self.lat, self.lng)


@dataclass(frozen=True, slots=True)
class GeolocationResult:
    fix: GeolocationFix | None = None
    error: GeolocationError | None = None

    @property
    def ok(self) -> bool:
        return self.fix is not None


PositionProvider = Callable[[GeolocationOptions], GeolocationFix]


def locate(provider: PositionProvider | None, options: GeolocationOptions | None = None) -> GeolocationResult:
    if provider is None:
        return GeolocationResult(error=GeolocationError(GeolocationErrorKind.UNSUPPORTED))
    try:
        fix = provider(options or GeolocationOptions())
    except GeolocationError as exc:
        LOGGER.warning("Geolocation failed kind=%s detail=%s", exc.kind.value, exc.detail)
        return GeolocationResult(error=exc)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Geolocation provider raised: %s", exc)
        return GeolocationResult(error=GeolocationError(GeolocationErrorKind.UNKNOWN, str(exc)))

    if fix is None or fix.point is None:
        return GeolocationResult(
            error=GeolocationError(GeolocationErrorKind.POSITION_UNAVAILABLE, "provider returned no usable position")
        )
    return GeolocationResult(fix=fix)
