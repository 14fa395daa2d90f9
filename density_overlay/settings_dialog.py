# density_overlay/settings_dialog.py
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

from PyQt6.QtCore import QSettings
from PyQt6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QCheckBox, QLabel, QComboBox,
    QDoubleSpinBox, QDialogButtonBox, QWidget, QGroupBox
)

from .config import OverlayConfig, get_config

ORG = "CivicTools"
APP = "ComplaintMap"

BASEMAP_THEMES = ("dark", "light", "gray", "none")


def _get_bool(settings: QSettings, key: str, default: bool) -> bool:
    val = settings.value(key, default)
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)):
        return bool(val)
    if isinstance(val, str):
        return val.strip().lower() in ("1", "true", "yes", "on", "y")
    return bool(val)


def _get_float(settings: QSettings, key: str, default: float) -> float:
    try:
        return float(settings.value(key, default))
    except (TypeError, ValueError):
        return float(default)


@dataclass
class OverlaySettings:
    radius_scale: float = 40.0
    core_alpha: float = 0.6
    mid_alpha: float = 0.2
    visibility_margin_px: float = 0.0
    basemap_theme: str = "dark"
    show_coastlines: bool = False

    # keys in QSettings
    _K_RADIUS = "overlay/radius_scale"
    _K_CORE_A = "overlay/core_alpha"
    _K_MID_A  = "overlay/mid_alpha"
    _K_MARGIN = "overlay/visibility_margin_px"
    _K_THEME  = "map/basemap_theme"
    _K_COAST  = "map/show_coastlines"

    @classmethod
    def from_config(cls, cfg: OverlayConfig) -> "OverlaySettings":
        return cls(
            radius_scale=float(cfg.radius_scale),
            core_alpha=float(cfg.core_color[3]),
            mid_alpha=float(cfg.mid_color[3]),
            visibility_margin_px=float(cfg.visibility_margin_px),
            basemap_theme=str(cfg.basemap_theme),
            show_coastlines=bool(cfg.show_coastlines),
        )

    @classmethod
    def load(cls) -> "OverlaySettings":
        s = QSettings(ORG, APP)
        d = cls()
        theme = str(s.value(cls._K_THEME, d.basemap_theme) or d.basemap_theme).lower()
        return cls(
            radius_scale=_get_float(s, cls._K_RADIUS, d.radius_scale),
            core_alpha=_get_float(s, cls._K_CORE_A, d.core_alpha),
            mid_alpha=_get_float(s, cls._K_MID_A, d.mid_alpha),
            visibility_margin_px=_get_float(s, cls._K_MARGIN, d.visibility_margin_px),
            basemap_theme=theme if theme in BASEMAP_THEMES else d.basemap_theme,
            show_coastlines=_get_bool(s, cls._K_COAST, d.show_coastlines),
        )

    def save(self) -> None:
        s = QSettings(ORG, APP)
        s.setValue(self._K_RADIUS, self.radius_scale)
        s.setValue(self._K_CORE_A, self.core_alpha)
        s.setValue(self._K_MID_A, self.mid_alpha)
        s.setValue(self._K_MARGIN, self.visibility_margin_px)
        s.setValue(self._K_THEME, self.basemap_theme)
        s.setValue(self._K_COAST, self.show_coastlines)

    def to_config(self, base: Optional[OverlayConfig] = None) -> OverlayConfig:
        base = base or get_config()
        core, mid = base.core_color, base.mid_color
        return replace(
            base,
            radius_scale=max(0.0, float(self.radius_scale)),
            core_color=(core[0], core[1], core[2], min(1.0, max(0.0, float(self.core_alpha)))),
            mid_color=(mid[0], mid[1], mid[2], min(1.0, max(0.0, float(self.mid_alpha)))),
            visibility_margin_px=max(0.0, float(self.visibility_margin_px)),
            basemap_theme=self.basemap_theme,
            show_coastlines=bool(self.show_coastlines),
        )


class OverlaySettingsDialog(QDialog):
    """
    Density overlay settings:
    - radius scale (px per unit intensity)
    - core / mid-tone opacity of the falloff
    - edge margin for points projected just outside the view
    - basemap theme + coastlines
    """
    def __init__(self, initial: OverlaySettings | None = None, parent: QWidget | None = None):
        super().__init__(parent)
        self.setWindowTitle("Overlay Settings")
        self._result = replace(initial) if initial is not None else OverlaySettings.load()

        root = QVBoxLayout(self)
        root.setContentsMargins(12, 12, 12, 12)
        root.setSpacing(10)

        # ---- Heat layer group ----
        grp_heat = QGroupBox("Density layer")
        form = QFormLayout(grp_heat)

        self.spin_radius = QDoubleSpinBox()
        self.spin_radius.setRange(0.0, 400.0)
        self.spin_radius.setDecimals(1)
        self.spin_radius.setSuffix(" px")
        self.spin_radius.setValue(self._result.radius_scale)
        self.spin_radius.setToolTip("Radius of a point with intensity 1.0.")

        self.spin_core = QDoubleSpinBox()
        self.spin_core.setRange(0.0, 1.0)
        self.spin_core.setSingleStep(0.05)
        self.spin_core.setValue(self._result.core_alpha)

        self.spin_mid = QDoubleSpinBox()
        self.spin_mid.setRange(0.0, 1.0)
        self.spin_mid.setSingleStep(0.05)
        self.spin_mid.setValue(self._result.mid_alpha)

        self.spin_margin = QDoubleSpinBox()
        self.spin_margin.setRange(0.0, 400.0)
        self.spin_margin.setDecimals(0)
        self.spin_margin.setSuffix(" px")
        self.spin_margin.setValue(self._result.visibility_margin_px)
        self.spin_margin.setToolTip("Keep drawing points that fall this far outside the visible map.")

        form.addRow("Radius scale", self.spin_radius)
        form.addRow("Core opacity", self.spin_core)
        form.addRow("Mid-tone opacity", self.spin_mid)
        form.addRow("Edge margin", self.spin_margin)

        # ---- Map group ----
        grp_map = QGroupBox("Map")
        form_map = QFormLayout(grp_map)
        self.cmb_theme = QComboBox()
        self.cmb_theme.addItems(list(BASEMAP_THEMES))
        self.cmb_theme.setCurrentText(self._result.basemap_theme)
        self.chk_coast = QCheckBox("Show coastlines")
        self.chk_coast.setChecked(self._result.show_coastlines)
        form_map.addRow("Basemap", self.cmb_theme)
        form_map.addRow("", self.chk_coast)

        info = QLabel("Changes apply to the live map immediately after OK.")
        info.setStyleSheet("color:#666;")
        info.setWordWrap(True)

        btns = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        btns.accepted.connect(self._on_accept)
        btns.rejected.connect(self.reject)

        root.addWidget(grp_heat)
        root.addWidget(grp_map)
        root.addWidget(info)
        root.addWidget(btns)

    def _on_accept(self):
        self._result.radius_scale = self.spin_radius.value()
        self._result.core_alpha = self.spin_core.value()
        self._result.mid_alpha = self.spin_mid.value()
        self._result.visibility_margin_px = self.spin_margin.value()
        self._result.basemap_theme = self.cmb_theme.currentText()
        self._result.show_coastlines = self.chk_coast.isChecked()
        self.accept()

    def settings(self) -> OverlaySettings:
        return self._result
