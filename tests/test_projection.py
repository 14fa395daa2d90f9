import math

from density_overlay.points import GeoPoint
from density_overlay.projection import NOT_VISIBLE, ProjectionAdapter


def test_inside_viewport_returns_pixel(host):
    adapter = ProjectionAdapter(host)
    assert adapter.project(GeoPoint(40.5, 50.5, 1.0)) == (50.5, 40.5)


def test_outside_viewport_is_not_visible(host):
    adapter = ProjectionAdapter(host)
    assert adapter.project(GeoPoint(40, 100, 1.0)) is NOT_VISIBLE     # x == width
    assert adapter.project(GeoPoint(80, 10, 1.0)) is NOT_VISIBLE      # y == height
    assert adapter.project(GeoPoint(-0.5, 10, 1.0)) is NOT_VISIBLE
    assert adapter.project(GeoPoint(10, -75, 1.0)) is NOT_VISIBLE


def test_host_sentinel_and_non_finite_results(host):
    adapter = ProjectionAdapter(host)
    host.hidden.add((10.0, 10.0))
    assert adapter.project(GeoPoint(10, 10, 1)) is NOT_VISIBLE

    host.project = lambda lat, lng: (math.nan, 5.0)
    assert adapter.project(GeoPoint(1, 1, 1)) is NOT_VISIBLE
    host.project = lambda lat, lng: (1e12, -1e12)
    assert adapter.project(GeoPoint(1, 1, 1)) is NOT_VISIBLE
    host.project = lambda lat, lng: None
    assert adapter.project(GeoPoint(1, 1, 1)) is NOT_VISIBLE


def test_margin_keeps_points_just_outside(host):
    adapter = ProjectionAdapter(host, margin_px=20)
    assert adapter.project(GeoPoint(10, 110, 1)) == (110.0, 10.0)
    assert adapter.project(GeoPoint(10, 125, 1)) is NOT_VISIBLE


def test_reads_through_to_current_transform(host):
    adapter = ProjectionAdapter(host)
    p = GeoPoint(10, 10, 1)
    assert adapter.project(p) == (10.0, 10.0)
    host.offset = (30.0, 5.0)   # pan
    assert adapter.project(p) == (40.0, 15.0)
    host.size = (20, 20)        # resize
    assert adapter.viewport_size() == (20, 20)
    assert adapter.project(p) is NOT_VISIBLE


def test_not_visible_is_falsy():
    assert not NOT_VISIBLE
