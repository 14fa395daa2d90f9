# density_overlay/compositor.py
from __future__ import annotations
from typing import Iterable, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from .config import OverlayConfig, RGBA, get_config
from .points import GeoPoint
from .projection import NOT_VISIBLE, ProjectionAdapter

log = logging.getLogger("ComplaintMap")


class Surface:
    """Owned RGBA pixel buffer, one row per screen line (row 0 = top).

    Pixels are kept premultiplied in float32; ``to_rgba8`` gives the
    straight-alpha bytes handed to the host for display.
    """

    def __init__(self, width: int = 0, height: int = 0) -> None:
        self.pixels = np.zeros((0, 0, 4), dtype=np.float32)
        self.resize(width, height)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[..., 3]

    def is_empty_area(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def resize(self, width: int, height: int) -> None:
        w, h = max(0, int(width)), max(0, int(height))
        if (w, h) != (self.width, self.height):
            self.pixels = np.zeros((h, w, 4), dtype=np.float32)

    def clear(self) -> None:
        self.pixels.fill(0.0)

    def to_rgba8(self) -> np.ndarray:
        px = self.pixels
        a = px[..., 3:4]
        with np.errstate(divide="ignore", invalid="ignore"):
            rgb = np.where(a > 0, px[..., :3] / np.maximum(a, 1e-12), 0.0)
        out = np.empty(px.shape, dtype=np.uint8)
        out[..., :3] = np.clip(np.rint(rgb * 255.0), 0, 255)
        out[..., 3] = np.clip(np.rint(px[..., 3] * 255.0), 0, 255)
        return out


def _premultiplied_stops(stops: Sequence[Tuple[float, RGBA]]) -> Tuple[np.ndarray, np.ndarray]:
    """Stop offsets and their colours as premultiplied 0..1 RGBA.

    Interpolating premultiplied colours keeps the hue of a stop while it fades
    toward a transparent one, the way a canvas radial gradient does.
    """
    offsets = np.array([float(o) for o, _ in stops], dtype=np.float64)
    colors = np.array([[c[0] / 255.0, c[1] / 255.0, c[2] / 255.0, c[3]] for _, c in stops], dtype=np.float64)
    colors = np.clip(colors, 0.0, 1.0)
    colors[:, :3] *= colors[:, 3:4]
    return offsets, colors


class DensityCompositor:
    """Paints one radial falloff per point and stacks them with source-over."""

    def __init__(self, config: Optional[OverlayConfig] = None) -> None:
        self.configure(config or get_config())

    def configure(self, config: OverlayConfig) -> None:
        self.radius_scale = float(config.radius_scale)
        self._offsets, self._colors = _premultiplied_stops(config.color_stops())

    def radius_for(self, intensity: float) -> float:
        return float(intensity) * self.radius_scale

    # ---- core pass ----
    def compose(self, surface: Surface, points: Iterable[GeoPoint], adapter: ProjectionAdapter) -> int:
        """Redraw ``surface`` from scratch. Returns how many points were painted."""
        surface.clear()
        if surface.is_empty_area():
            return 0

        size = surface.size
        painted = 0
        for p in points:
            xy = adapter.project(p, size)
            if xy is NOT_VISIBLE:
                continue
            radius = self.radius_for(p.intensity)
            if radius <= 0:
                continue
            if self.paint_falloff(surface, xy[0], xy[1], radius):
                painted += 1
        return painted

    def paint_falloff(self, surface: Surface, cx: float, cy: float, radius: float) -> bool:
        """Source-over one gradient disc centred at pixel coords (cx, cy)."""
        if radius <= 0 or not math.isfinite(radius) or surface.is_empty_area():
            return False
        h, w = surface.height, surface.width
        x0 = max(0, int(math.floor(cx - radius)))
        x1 = min(w, int(math.ceil(cx + radius)) + 1)
        y0 = max(0, int(math.floor(cy - radius)))
        y1 = min(h, int(math.ceil(cy + radius)) + 1)
        if x0 >= x1 or y0 >= y1:
            return False

        # sample at pixel centres
        ys = np.arange(y0, y1, dtype=np.float64)[:, None] + 0.5
        xs = np.arange(x0, x1, dtype=np.float64)[None, :] + 0.5
        t = np.hypot(xs - cx, ys - cy) / radius
        inside = t < 1.0
        if not inside.any():
            return False

        src = np.empty(t.shape + (4,), dtype=np.float64)
        for ch in range(4):
            src[..., ch] = np.interp(t, self._offsets, self._colors[:, ch])
        src[~inside] = 0.0
        src_a = src[..., 3:4]

        dst = surface.pixels[y0:y1, x0:x1]
        dst[...] = (src + dst * (1.0 - src_a)).astype(np.float32)
        return True
