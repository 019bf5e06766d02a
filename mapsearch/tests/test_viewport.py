import random

from mapsearch.core import viewport
from mapsearch.core.models import GeoPoint
from mapsearch.core.viewport import WebMercatorViewport, estimate_search_radius, radius_for_accuracy

KIGALI = GeoPoint(-1.9441, 30.0619)


def test_estimate_search_radius_damps_corner_distance():
    assert estimate_search_radius(GeoPoint(0, 0), GeoPoint(0.1, 0.1), GeoPoint(-0.1, -0.1)) == 11


def test_estimate_search_radius_clamps_degenerate_and_huge_viewports():
    assert estimate_search_radius(KIGALI, KIGALI, KIGALI) == 5
    assert estimate_search_radius(GeoPoint(0, 0), GeoPoint(60, 120), GeoPoint(-60, -120)) == 50


def test_estimate_search_radius_rounds_half_up(monkeypatch):
    monkeypatch.setattr(viewport, "RADIUS_DAMPING", 0.5)
    monkeypatch.setattr(viewport, "haversine_km", lambda a, b: 25.0)
    assert estimate_search_radius(KIGALI, KIGALI, KIGALI) == 13

    monkeypatch.setattr(viewport, "haversine_km", lambda a, b: 21.0)
    assert estimate_search_radius(KIGALI, KIGALI, KIGALI) == 11


def test_estimate_search_radius_always_within_bounds():
    rng = random.Random(3)
    for _ in range(200):
        center = GeoPoint(rng.uniform(-80, 80), rng.uniform(-170, 170))
        span = rng.choice([0.0, 0.001, 0.05, 0.5, 5.0])
        north_east = GeoPoint(min(90, center.lat + span), min(180, center.lng + span))
        south_west = GeoPoint(max(-90, center.lat - span), max(-180, center.lng - span))
        radius = estimate_search_radius(center, north_east, south_west)
        assert isinstance(radius, int)
        assert 5 <= radius <= 50


def test_radius_for_accuracy_widens_imprecise_fixes():
    assert radius_for_accuracy(3, 1500) == 10
    assert radius_for_accuracy(25, 1500) == 25
    assert radius_for_accuracy(3, 500) == 5
    assert radius_for_accuracy(3, 50) == 3
    assert radius_for_accuracy(3, None) == 3


def test_web_mercator_projects_center_to_container_middle():
    viewport = WebMercatorViewport(center=KIGALI, zoom=10, width_px=1280, height_px=800)
    x, y = viewport.project(KIGALI)
    assert abs(x - 640) < 1e-6
    assert abs(y - 400) < 1e-6


def test_web_mercator_axes_and_round_trip():
    viewport = WebMercatorViewport(center=KIGALI, zoom=12, width_px=800, height_px=600)
    east_x, _ = viewport.project(GeoPoint(KIGALI.lat, KIGALI.lng + 0.01))
    _, north_y = viewport.project(GeoPoint(KIGALI.lat + 0.01, KIGALI.lng))
    assert east_x > 400
    assert north_y < 300

    point = GeoPoint(-1.95, 30.10)
    back = viewport.unproject(*viewport.project(point))
    assert abs(back.lat - point.lat) < 1e-9
    assert abs(back.lng - point.lng) < 1e-9


def test_web_mercator_bounds_surround_center_and_shrink_with_zoom():
    wide = WebMercatorViewport(center=KIGALI, zoom=10, width_px=1280, height_px=800)
    north_east, south_west = wide.bounds()
    assert south_west.lat < KIGALI.lat < north_east.lat
    assert south_west.lng < KIGALI.lng < north_east.lng

    narrow_ne, _ = wide.zoom_to(13).bounds()
    assert narrow_ne.lat - KIGALI.lat < north_east.lat - KIGALI.lat
    assert estimate_search_radius(KIGALI, *wide.bounds()) == 50
    assert estimate_search_radius(KIGALI, *wide.zoom_to(13).bounds()) == 10
