# density_overlay/config.py
from __future__ import annotations
from dataclasses import dataclass, field, asdict, replace
from typing import Dict, Tuple

RGBA = Tuple[float, float, float, float]  # r, g, b in 0..255, alpha in 0..1

# ---- defaults ----
RADIUS_SCALE = 40.0          # pixels per unit intensity
OVERLAY_ZORDER = 4           # above axes content (axes sit at zorder 0)


@dataclass
class OverlayConfig:
    radius_scale: float = RADIUS_SCALE
    core_color: RGBA = (59.0, 130.0, 246.0, 0.6)    # dense core (blue)
    mid_color: RGBA = (99.0, 102.0, 241.0, 0.2)     # mid tone (indigo)
    edge_color: RGBA = (0.0, 0.0, 0.0, 0.0)         # transparent edge
    mid_stop: float = 0.5
    visibility_margin_px: float = 0.0
    overlay_zorder: int = OVERLAY_ZORDER

    # complaint feed
    urgency_weights: Dict[str, float] = field(default_factory=lambda: {"critical": 1.0, "high": 0.7})
    default_weight: float = 0.4

    # viewer
    center_lat: float = 19.0760     # Mumbai
    center_lon: float = 72.8777
    zoom: int = 11
    basemap_theme: str = "dark"
    show_coastlines: bool = False

    def color_stops(self) -> Tuple[Tuple[float, RGBA], ...]:
        mid = float(min(max(self.mid_stop, 1e-6), 1.0 - 1e-6))
        return ((0.0, self.core_color), (mid, self.mid_color), (1.0, self.edge_color))

    def to_dict(self) -> Dict:
        return asdict(self)


_cfg = OverlayConfig()


def get_config() -> OverlayConfig:
    return _cfg


def set_config(**changes) -> OverlayConfig:
    """Replace the shared config with a copy carrying ``changes``.

    Unknown keys raise ``TypeError`` so typos in settings don't pass silently.
    """
    global _cfg
    _cfg = replace(_cfg, **changes)
    return _cfg


def reset_config() -> OverlayConfig:
    global _cfg
    _cfg = OverlayConfig()
    return _cfg
