# density_overlay/map_viewer.py
from __future__ import annotations
from typing import Any, Iterable, List, Optional
import logging

import pandas as pd
from matplotlib.figure import Figure
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas, NavigationToolbar2QT

import cartopy.crs as ccrs
import cartopy.feature as cfeature

from PyQt6.QtCore import QSize
from PyQt6.QtWidgets import QWidget, QVBoxLayout, QHBoxLayout, QLabel, QSizePolicy

from .complaints import points_from_complaints
from .config import OverlayConfig, get_config
from .lifecycle import DensityOverlay, OverlayState, QtScheduler
from .mpl_host import MatplotlibMapHost, extent_for_zoom
from .points import PointStore

log = logging.getLogger("ComplaintMap")

QP = getattr(QSizePolicy, "Policy", QSizePolicy)

_THEMES = {
    # facecolor, land color (None = no land feature)
    "dark":  ("#09090b", "#18181b"),
    "light": ("#e8f4ff", "#f5f5f2"),
    "gray":  ("#e5e5e5", "#dcdcdc"),
    "none":  ("white", None),
}


class ComplaintMapViewer(QWidget):
    """Pannable/zoomable map (matplotlib + toolbar) carrying the complaint density overlay."""

    natural_width_px = 720

    def __init__(self, config: Optional[OverlayConfig] = None, parent=None):
        super().__init__(parent)
        self.cfg = config or get_config()
        self.overlay: Optional[DensityOverlay] = None
        self._points: tuple = ()
        self._base_artists: List[Any] = []

        # --- Figure & Canvas (no margins: the overlay covers the whole axes) ---
        self.fig = Figure(figsize=(7.2, 7.2), dpi=100)
        self.ax = self.fig.add_axes([0.0, 0.0, 1.0, 1.0], projection=ccrs.PlateCarree())
        self.ax.set_aspect("auto")
        self.canvas = FigureCanvas(self.fig)
        self.canvas.setSizePolicy(QP.Expanding, QP.Expanding)
        self.toolbar = NavigationToolbar2QT(self.canvas, self)

        self.host = MatplotlibMapHost(self.ax, source_crs=ccrs.PlateCarree())

        # --- Layout ---
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        toolrow = QHBoxLayout()
        toolrow.addWidget(self.toolbar); toolrow.addStretch(1)
        self.lbl_status = QLabel("Points: 0   |   Cursor: —")
        toolrow.addWidget(self.lbl_status)
        layout.addLayout(toolrow)
        layout.addWidget(self.canvas, 1)

        self.badge = QLabel("●  LIVE DENSITY FEED", self.canvas)
        self.badge.setStyleSheet(
            "background: rgba(9,9,11,170); color: #60a5fa; border: 1px solid rgba(59,130,246,80);"
            "border-radius: 10px; padding: 4px 10px; font-size: 10px; font-weight: 800;"
        )
        self.badge.move(16, 16)

        self._cid_move = self.canvas.mpl_connect("motion_notify_event", self._on_mouse_move)

        self._apply_basemap()
        self._set_initial_view()

    def sizeHint(self) -> QSize:
        return QSize(self.natural_width_px, self.natural_width_px)

    # -------- Overlay lifecycle --------
    def showEvent(self, event):  # noqa: N802
        super().showEvent(event)
        self._ensure_overlay()

    def closeEvent(self, event):  # noqa: N802
        self.shutdown()
        super().closeEvent(event)

    def _ensure_overlay(self):
        if self.overlay is not None and self.overlay.state is OverlayState.ATTACHED:
            return
        # a detached overlay can't come back; start a fresh one
        overlay = DensityOverlay(scheduler=QtScheduler(), config=self.cfg)
        overlay.set_points(self._points)
        overlay.mount(self.host)
        self.overlay = overlay

    def shutdown(self):
        if self.overlay is not None:
            self.overlay.unmount()

    # -------- Public data/config API --------
    def set_points(self, points: Iterable[Any]) -> int:
        self._points = tuple(points)
        kept = len(PointStore(self._points))
        if self.overlay is not None and self.overlay.state is OverlayState.ATTACHED:
            kept = self.overlay.set_points(self._points)
        self._update_status(kept)
        return kept

    def set_complaints(self, df: pd.DataFrame) -> int:
        pts = points_from_complaints(df, self.cfg.urgency_weights, self.cfg.default_weight)
        return self.set_points(pts)

    def apply_config(self, cfg: OverlayConfig):
        theme_changed = (cfg.basemap_theme != self.cfg.basemap_theme
                         or cfg.show_coastlines != self.cfg.show_coastlines)
        self.cfg = cfg
        if theme_changed:
            self._apply_basemap()
        if self.overlay is not None and self.overlay.state is OverlayState.ATTACHED:
            self.overlay.apply_config(cfg)
        self.canvas.draw_idle()

    def reset_view(self):
        self._set_initial_view()
        self.canvas.draw_idle()

    # -------- Internal --------
    def _set_initial_view(self):
        w, h = self.host.viewport_size_px()
        x0, x1, y0, y1 = extent_for_zoom(self.cfg.center_lat, self.cfg.center_lon, self.cfg.zoom, w, h)
        self.ax.set_xlim(x0, x1)
        self.ax.set_ylim(y0, y1)

    def _apply_basemap(self):
        for artist in self._base_artists:
            try:
                artist.remove()
            except (ValueError, NotImplementedError) as e:
                log.debug("Basemap artist already gone: %s", e)
        self._base_artists = []

        face, land = _THEMES.get((self.cfg.basemap_theme or "dark").lower(), _THEMES["dark"])
        self.ax.set_facecolor(face)
        self.fig.set_facecolor(face)
        if land is not None:
            try:
                self._base_artists.append(
                    self.ax.add_feature(cfeature.LAND.with_scale("50m"), facecolor=land, edgecolor="none", zorder=0)
                )
            except Exception as e:
                log.warning("Basemap land layer unavailable: %s", e)
        if self.cfg.show_coastlines:
            try:
                self._base_artists.append(self.ax.coastlines(resolution="50m", color="#3f3f46", linewidth=0.6, zorder=1))
            except Exception as e:
                log.warning("Coastlines unavailable: %s", e)

    def _update_status(self, n: int):
        txt = self.lbl_status.text()
        cursor = txt.split("|", 1)[1].strip() if "|" in txt else "Cursor: —"
        self.lbl_status.setText(f"Points: {n:,}   |   {cursor}")

    def _on_mouse_move(self, event):
        head = self.lbl_status.text().split("|")[0].strip()
        if event.inaxes == self.ax and event.xdata is not None and event.ydata is not None:
            self.lbl_status.setText(f"{head}   |   Cursor: {event.ydata:.5f}°, {event.xdata:.5f}°")
        else:
            self.lbl_status.setText(f"{head}   |   Cursor: —")
