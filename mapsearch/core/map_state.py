from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from mapsearch.core.bottom_sheet import BottomSheetDrag
from mapsearch.core.geolocation import GeolocationResult
from mapsearch.core.listing_set import ListingSet
from mapsearch.core.models import BottomSheetState, GeoPoint, Listing, ListingMarker, SearchArea
from mapsearch.core.proximity import ProximityFilter
from mapsearch.core.settings import Settings
from mapsearch.core.viewport import estimate_search_radius, radius_for_accuracy


LOGGER = logging.getLogger(__name__)

LOCATION_SELECT_ZOOM = 13
LISTING_FOCUS_ZOOM = 15


class MapViewport(Protocol):
    center: GeoPoint
    zoom: float

    def project(self, point: GeoPoint) -> tuple[float, float]: ...

    def bounds(self) -> tuple[GeoPoint, GeoPoint]: ...

    def zoom_to(self, zoom: float, center: GeoPoint | None = None) -> MapViewport: ...


class ViewMode(str, Enum):
    MAP = "map"
    LIST = "list"


@dataclass(frozen=True, slots=True)
class PopupAnchor:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Layout:
    is_mobile: bool
    sidebar_open: bool
    bottom_sheet_open: bool
    view_mode: ViewMode

    @property
    def list_visible(self) -> bool:
        return self.bottom_sheet_open if self.is_mobile else self.sidebar_open


@dataclass(frozen=True, slots=True)
class TileLayer:
    url_template: str
    attribution: str


def format_price_label(price: float | None) -> str:
    if not price:
        return "0"
    if price >= 1000:
        return f"{math.floor(price / 1000 + 0.5)}K"
    return str(math.floor(price + 0.5))


def build_markers(
    listing_set: ListingSet,
    visible_ids: list[str],
    selected_id: str | None = None,
    hovered_id: str | None = None,
) -> list[ListingMarker]:
    markers: list[ListingMarker] = []
    for listing_id in visible_ids:
        listing = listing_set.get(listing_id)
        point = listing_set.point(listing_id)
        if listing is None or point is None:
            continue
        markers.append(
            ListingMarker(
                id=listing_id,
                point=point,
                price_label=format_price_label(listing.price_per_day),
                currency=listing.currency or "USD",
                selected=listing_id == selected_id,
                hovered=listing_id == hovered_id,
            )
        )
    return markers


class MapViewStateController:
    """
    Keeps map markers, list selection and the marker popup consistent.

    Every handler recomputes from the current state (listing set, viewport,
    search area), so repeated map move/zoom events are idempotent.
    """

    def __init__(
        self,
        listing_set: ListingSet,
        viewport: MapViewport,
        settings: Settings | None = None,
        width_px: int = 1280,
        height_px: int = 800,
        on_location_select: Callable[[float, float, float], None] | None = None,
        on_product_click: Callable[[str], None] | None = None,
        scroll_into_view: Callable[[str], None] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.listing_set = listing_set
        self.viewport = viewport
        self.on_location_select = on_location_select
        self.on_product_click = on_product_click
        self.scroll_into_view = scroll_into_view

        self.search_area: SearchArea | None = None
        self.radius_km = self.settings.default_radius_km
        self.selected_id: str | None = None
        self.hovered_id: str | None = None
        self.clicked_marker_id: str | None = None
        self.popup_anchor: PopupAnchor | None = None

        self.view_mode = ViewMode.MAP
        self.width_px = width_px
        self.height_px = height_px
        self._sidebar_open = True
        self._bottom_sheet_open = False
        self.sheet = BottomSheetDrag(viewport_height=height_px)
        self._proximity = ProximityFilter()
        self._apply_layout()

    # Listings and markers

    def set_listing_set(self, listing_set: ListingSet) -> None:
        self.listing_set = listing_set
        self._proximity.invalidate()
        if self.selected_id not in listing_set:
            self.selected_id = None
        if self.hovered_id not in listing_set:
            self.hovered_id = None
        if self.clicked_marker_id not in listing_set:
            self.clicked_marker_id = None
        self._refresh_popup_anchor()

    def visible_ids(self) -> list[str]:
        return self._proximity.filter(self.listing_set.points(), self.search_area)

    def visible_listings(self) -> list[Listing]:
        listings = [self.listing_set.get(listing_id) for listing_id in self.visible_ids()]
        return [listing for listing in listings if listing is not None]

    def markers(self) -> list[ListingMarker]:
        return build_markers(self.listing_set, self.visible_ids(), self.selected_id, self.hovered_id)

    @property
    def tile_layer(self) -> TileLayer:
        return TileLayer(self.settings.tile_url_template, self.settings.tile_attribution)

    # Marker and map interaction

    def click_marker(self, listing_id: str) -> PopupAnchor | None:
        point = self.listing_set.point(listing_id)
        if point is None:
            return None
        self.clicked_marker_id = listing_id
        self.selected_id = listing_id
        self._refresh_popup_anchor()
        if self.layout.list_visible and self.scroll_into_view:
            self.scroll_into_view(listing_id)
        return self.popup_anchor

    def click_map(self, point: GeoPoint) -> None:
        """Background click: close the popup and search around the clicked point."""
        self.clicked_marker_id = None
        self.popup_anchor = None
        self.select_location(point.lat, point.lng, self.radius_km)

    def move_map(self, viewport: MapViewport) -> None:
        """Handle a move or zoom end event with the map's current viewport."""
        self.viewport = viewport
        self._refresh_popup_anchor()

    def hover(self, listing_id: str | None) -> None:
        self.hovered_id = listing_id if listing_id in self.listing_set else None

    def click_list_entry(self, listing_id: str) -> None:
        if listing_id not in self.listing_set:
            return
        point = self.listing_set.point(listing_id)
        self.selected_id = listing_id
        if self.on_product_click:
            self.on_product_click(listing_id)
        if point is not None:
            self.move_map(self.viewport.zoom_to(LISTING_FOCUS_ZOOM, center=point))

    # Search area

    def select_location(self, lat: float, lng: float, radius_km: float) -> SearchArea:
        area = SearchArea(center=GeoPoint(lat=lat, lng=lng), radius_km=float(radius_km))
        self.search_area = area
        self.radius_km = area.radius_km
        self.move_map(self.viewport.zoom_to(LOCATION_SELECT_ZOOM, center=area.center))
        LOGGER.info("Search area set lat=%s lng=%s radius_km=%s", lat, lng, area.radius_km)
        if self.on_location_select:
            self.on_location_select(lat, lng, area.radius_km)
        return area

    def set_radius_km(self, radius_km: float) -> None:
        if radius_km <= 0:
            raise ValueError(f"radius_km must be > 0, got {radius_km!r}")
        self.radius_km = float(radius_km)
        if self.search_area is not None:
            self.search_area = SearchArea(center=self.search_area.center, radius_km=self.radius_km)

    def clear_search_area(self) -> None:
        self.search_area = None

    def search_this_area(self) -> SearchArea:
        north_east, south_west = self.viewport.bounds()
        center = self.viewport.center
        radius = estimate_search_radius(center, north_east, south_west)
        return self.select_location(center.lat, center.lng, radius)

    def use_geolocation(self, result: GeolocationResult) -> str | None:
        """Apply a geolocation result; returns a user-facing message on failure."""
        if not result.ok or result.fix is None:
            return result.error.message if result.error else None
        fix = result.fix
        radius = radius_for_accuracy(self.radius_km, fix.accuracy_meters)
        self.select_location(fix.lat, fix.lng, radius)
        return None

    # Layout

    @property
    def layout(self) -> Layout:
        return Layout(
            is_mobile=self.width_px < self.settings.mobile_breakpoint_px,
            sidebar_open=self._sidebar_open,
            bottom_sheet_open=self._bottom_sheet_open,
            view_mode=self.view_mode,
        )

    def resize(self, width_px: int, height_px: int) -> Layout:
        self.width_px = width_px
        self.height_px = height_px
        self.sheet.resize(height_px)
        self._apply_layout()
        return self.layout

    def toggle_view_mode(self) -> ViewMode:
        self.view_mode = ViewMode.LIST if self.view_mode is ViewMode.MAP else ViewMode.MAP
        self._apply_layout()
        return self.view_mode

    def toggle_sidebar(self) -> bool:
        if not self.layout.is_mobile:
            self._sidebar_open = not self._sidebar_open
        return self._sidebar_open

    def _apply_layout(self) -> None:
        if self.width_px < self.settings.mobile_breakpoint_px:
            self._sidebar_open = False
            self._bottom_sheet_open = self.view_mode is ViewMode.LIST
        else:
            self._sidebar_open = True
            self._bottom_sheet_open = False

    # Bottom sheet

    @property
    def bottom_sheet(self) -> BottomSheetState:
        return self.sheet.state

    def start_sheet_drag(self, y: float) -> None:
        self.sheet.start(y)

    def drag_sheet(self, y: float) -> BottomSheetState:
        return self.sheet.move(y)

    def end_sheet_drag(self) -> BottomSheetState:
        return self.sheet.end()

    def _refresh_popup_anchor(self) -> None:
        if self.clicked_marker_id is None:
            self.popup_anchor = None
            return
        point = self.listing_set.point(self.clicked_marker_id)
        if point is None:
            self.clicked_marker_id = None
            self.popup_anchor = None
            return
        x, y = self.viewport.project(point)
        self.popup_anchor = PopupAnchor(x=x, y=y)
