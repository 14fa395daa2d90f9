# density_overlay/mpl_host.py
from __future__ import annotations
from typing import Any, Callable, List, Optional, Tuple
import math

import numpy as np

from .projection import NOT_VISIBLE, Projection


def extent_for_zoom(center_lat: float, center_lon: float, zoom: float,
                    width_px: int, height_px: int) -> Tuple[float, float, float, float]:
    """Lon/lat extent showing roughly what a 256px-tile web map shows at ``zoom``."""
    deg_per_px = 360.0 / (256.0 * (2.0 ** float(zoom)))
    half_w = 0.5 * max(1, int(width_px)) * deg_per_px
    half_h = 0.5 * max(1, int(height_px)) * deg_per_px
    x0, x1 = max(-180.0, center_lon - half_w), min(180.0, center_lon + half_w)
    y0, y1 = max(-90.0, center_lat - half_h), min(90.0, center_lat + half_h)
    return x0, x1, y0, y1


class MatplotlibOverlayContainer:
    """Presents a Surface as a figure image laid exactly over one Axes."""

    def __init__(self, ax) -> None:
        self.ax = ax
        self.image = None
        self._surface = None

    @property
    def figure(self):
        return self.ax.figure

    def _origin_px(self) -> Tuple[int, int]:
        bb = self.ax.bbox
        return int(round(bb.x0)), int(round(bb.y0))

    def attach_surface(self, surface, zorder: int) -> None:
        if self.image is not None:
            raise RuntimeError("a surface is already attached to this axes")
        xo, yo = self._origin_px()
        placeholder = np.zeros((max(1, surface.height), max(1, surface.width), 4), dtype=np.uint8)
        self.image = self.figure.figimage(placeholder, xo=xo, yo=yo, origin="upper",
                                          resize=False, zorder=zorder)
        self._surface = surface

    def present(self, surface) -> None:
        if self.image is None or surface is not self._surface:
            return
        if surface.is_empty_area():
            return
        self.image.set_data(surface.to_rgba8())
        self.image.ox, self.image.oy = self._origin_px()
        canvas = getattr(self.figure, "canvas", None)
        if canvas is not None:
            canvas.draw_idle()

    def detach_surface(self, surface) -> None:
        img, self.image, self._surface = self.image, None, None
        if img is None:
            return
        try:
            img.remove()
        except (ValueError, NotImplementedError):
            if img in self.figure.images:
                self.figure.images.remove(img)
        canvas = getattr(self.figure, "canvas", None)
        if canvas is not None:
            canvas.draw_idle()

    def is_attached(self) -> bool:
        return self.image is not None and self.image in self.figure.images


class MatplotlibMapHost:
    """
    Host adapter over a matplotlib Axes (plain lon/lat axes or a cartopy GeoAxes).

    For GeoAxes pass ``source_crs`` (e.g. ``ccrs.PlateCarree()``); coordinates are
    then pushed through ``ax.projection`` before the data transform.
    """

    def __init__(self, ax, source_crs: Any = None) -> None:
        self.ax = ax
        self.source_crs = source_crs
        self._container: Optional[MatplotlibOverlayContainer] = None

    def viewport_size_px(self) -> Tuple[int, int]:
        bb = self.ax.bbox
        return max(0, int(round(bb.width))), max(0, int(round(bb.height)))

    def project(self, latitude: float, longitude: float) -> Projection:
        x, y = float(longitude), float(latitude)
        if self.source_crs is not None:
            x, y = self.ax.projection.transform_point(x, y, self.source_crs)
        dx, dy = self.ax.transData.transform((x, y))
        if not (math.isfinite(dx) and math.isfinite(dy)):
            return NOT_VISIBLE
        bb = self.ax.bbox
        # display coords are bottom-left based; the surface is top-left based
        return float(dx - bb.x0), float(bb.y1 - dy)

    def subscribe_viewport_change(self, callback: Callable[..., None]) -> Callable[[], None]:
        ax_cids: List[int] = [
            self.ax.callbacks.connect("xlim_changed", callback),
            self.ax.callbacks.connect("ylim_changed", callback),
        ]
        canvas = self.ax.figure.canvas
        canvas_cid = canvas.mpl_connect("resize_event", callback)

        def unsubscribe() -> None:
            for cid in ax_cids:
                self.ax.callbacks.disconnect(cid)
            canvas.mpl_disconnect(canvas_cid)

        return unsubscribe

    def overlay_insertion_point(self) -> MatplotlibOverlayContainer:
        if self._container is None:
            self._container = MatplotlibOverlayContainer(self.ax)
        return self._container
