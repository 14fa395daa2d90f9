import pytest
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from density_overlay.lifecycle import DensityOverlay, ManualScheduler
from density_overlay.mpl_host import MatplotlibMapHost, extent_for_zoom
from density_overlay.projection import NOT_VISIBLE, ProjectionAdapter
from density_overlay.points import GeoPoint


@pytest.fixture
def ax():
    fig = Figure(figsize=(4, 3), dpi=100)
    FigureCanvasAgg(fig)
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(72.7, 73.1)
    ax.set_ylim(18.9, 19.2)
    return ax


@pytest.fixture
def mpl_host(ax):
    return MatplotlibMapHost(ax)


def test_viewport_size_matches_axes_box(mpl_host):
    assert mpl_host.viewport_size_px() == (400, 300)


def test_project_uses_top_left_origin(mpl_host):
    assert mpl_host.project(19.05, 72.9) == pytest.approx((200.0, 150.0), abs=1e-6)
    assert mpl_host.project(19.2, 72.7) == pytest.approx((0.0, 0.0), abs=1e-6)
    assert mpl_host.project(18.9, 73.1) == pytest.approx((400.0, 300.0), abs=1e-6)


def test_adapter_culls_outside_axes(mpl_host):
    adapter = ProjectionAdapter(mpl_host)
    assert adapter.project(GeoPoint(19.05, 72.9, 1.0)) != NOT_VISIBLE
    assert adapter.project(GeoPoint(19.05, 74.0, 1.0)) is NOT_VISIBLE


def test_limit_changes_notify_until_unsubscribed(ax, mpl_host):
    seen = []
    unsubscribe = mpl_host.subscribe_viewport_change(lambda *a: seen.append(a))
    ax.set_xlim(72.6, 73.0)
    ax.set_ylim(18.8, 19.1)
    assert len(seen) == 2

    unsubscribe()
    ax.set_xlim(72.5, 72.9)
    assert len(seen) == 2


def test_overlay_round_trip_on_axes(ax, mpl_host):
    fig = ax.figure
    scheduler = ManualScheduler()
    overlay = DensityOverlay(scheduler=scheduler)
    overlay.set_points([(19.05, 72.9, 1.0), (19.0, 72.75, 0.4)])

    overlay.mount(mpl_host)
    assert len(fig.images) == 1
    image = fig.images[0]
    assert image.get_zorder() == overlay.config.overlay_zorder
    assert image.get_array().shape == (300, 400, 4)
    assert overlay.last_painted == 2
    assert overlay.surface.alpha[150, 200] > 0.5

    ax.set_xlim(72.8, 73.2)     # pan right; points move left
    assert overlay.is_pending
    scheduler.run_pending()
    assert overlay.recompose_count == 2
    assert overlay.last_painted == 1
    assert overlay.surface.alpha[150, 100] > 0.5

    fig.canvas.draw()

    overlay.unmount()
    assert fig.images == []
    ax.set_xlim(72.7, 73.1)
    assert scheduler.pending == 0


def test_container_rejects_second_surface(mpl_host):
    overlay = DensityOverlay(scheduler=ManualScheduler())
    overlay.mount(mpl_host)
    other = DensityOverlay(scheduler=ManualScheduler())
    with pytest.raises(RuntimeError):
        other.mount(mpl_host)
    assert len(mpl_host.ax.figure.images) == 1


def test_extent_for_zoom():
    x0, x1, y0, y1 = extent_for_zoom(19.0760, 72.8777, 11, 256, 256)
    assert x1 - x0 == pytest.approx(360.0 / 2048)
    assert (x0 + x1) / 2 == pytest.approx(72.8777)
    assert (y0 + y1) / 2 == pytest.approx(19.0760)


def test_extent_is_clamped_to_world():
    x0, x1, y0, y1 = extent_for_zoom(0.0, 179.9, 0, 256, 256)
    assert x1 == 180.0
    assert x0 == pytest.approx(-0.1)
    assert (y0, y1) == (-90.0, 90.0)
