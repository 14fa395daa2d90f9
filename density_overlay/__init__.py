# density_overlay/__init__.py
from .config import OverlayConfig, get_config, set_config, reset_config, RADIUS_SCALE
from .points import GeoPoint, PointStore, coerce_point
from .projection import NOT_VISIBLE, NotVisible, MapHost, OverlayContainer, ProjectionAdapter
from .compositor import DensityCompositor, Surface
from .lifecycle import (
    DensityOverlay, OverlayState, OverlayStateError, OverlayDetachedError,
    ManualScheduler, QtScheduler,
)
from .mpl_host import MatplotlibMapHost, MatplotlibOverlayContainer, extent_for_zoom
from .complaints import points_from_complaints, urgency_weight, load_complaints, list_tables

# Qt widgets live in map_viewer / settings_dialog and are imported by the app.

__all__ = [
    "OverlayConfig", "get_config", "set_config", "reset_config", "RADIUS_SCALE",
    "GeoPoint", "PointStore", "coerce_point",
    "NOT_VISIBLE", "NotVisible", "MapHost", "OverlayContainer", "ProjectionAdapter",
    "DensityCompositor", "Surface",
    "DensityOverlay", "OverlayState", "OverlayStateError", "OverlayDetachedError",
    "ManualScheduler", "QtScheduler",
    "MatplotlibMapHost", "MatplotlibOverlayContainer", "extent_for_zoom",
    "points_from_complaints", "urgency_weight", "load_complaints", "list_tables",
]
