# density_overlay/projection.py
from __future__ import annotations
from typing import Any, Callable, Optional, Protocol, Tuple, Union
import enum
import math

from .points import GeoPoint


class NotVisible(enum.Enum):
    TOKEN = "NOT_VISIBLE"

    def __bool__(self) -> bool:
        return False


NOT_VISIBLE = NotVisible.TOKEN

PixelXY = Tuple[float, float]
Projection = Union[PixelXY, NotVisible]


# -------- Host contract (supplied by the map widget) --------
class OverlayContainer(Protocol):
    def attach_surface(self, surface: Any, zorder: int) -> None: ...
    def present(self, surface: Any) -> None: ...
    def detach_surface(self, surface: Any) -> None: ...


class MapHost(Protocol):
    def viewport_size_px(self) -> Tuple[int, int]: ...
    def project(self, latitude: float, longitude: float) -> Projection: ...
    def subscribe_viewport_change(self, callback: Callable[..., None]) -> Callable[[], None]: ...
    def overlay_insertion_point(self) -> OverlayContainer: ...


# -------- Adapter --------
class ProjectionAdapter:
    """Read-through view of the host's current transform.

    Nothing is cached: every call asks the host, so a pan/zoom between two
    passes is always reflected in the next one.
    """

    def __init__(self, host: MapHost, margin_px: float = 0.0) -> None:
        self.host = host
        self.margin_px = max(0.0, float(margin_px))

    def viewport_size(self) -> Tuple[int, int]:
        w, h = self.host.viewport_size_px()
        return max(0, int(w)), max(0, int(h))

    def project(self, point: GeoPoint, size: Optional[Tuple[int, int]] = None) -> Projection:
        res = self.host.project(point.latitude, point.longitude)
        if res is None or res is NOT_VISIBLE:
            return NOT_VISIBLE
        try:
            x, y = float(res[0]), float(res[1])
        except (TypeError, ValueError, IndexError):
            return NOT_VISIBLE
        if not (math.isfinite(x) and math.isfinite(y)):
            return NOT_VISIBLE

        w, h = size if size is not None else self.viewport_size()
        m = self.margin_px
        if x < -m or y < -m or x >= w + m or y >= h + m:
            return NOT_VISIBLE
        return x, y
