# density_overlay/points.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple
import logging
import math

log = logging.getLogger("ComplaintMap")

_LAT_KEYS = ("latitude", "lat", "Lat")
_LNG_KEYS = ("longitude", "lng", "lon", "Lon")
_INT_KEYS = ("intensity", "weight")


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float
    intensity: float

    def is_valid(self) -> bool:
        lat, lng, w = self.latitude, self.longitude, self.intensity
        try:
            if not (math.isfinite(lat) and math.isfinite(lng) and math.isfinite(w)):
                return False
        except (TypeError, OverflowError):
            return False
        return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def _pick(d: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for k in keys:
        if k in d:
            return d[k]
    raise KeyError(keys[0])


def coerce_point(item: Any) -> Optional[GeoPoint]:
    """Build a GeoPoint from a GeoPoint, a mapping or a (lat, lng, intensity) triple.

    Returns None for anything that can't be read as three numbers.
    """
    if isinstance(item, GeoPoint):
        return item
    if isinstance(item, (str, bytes, bytearray)):
        return None
    try:
        if isinstance(item, Mapping):
            lat, lng, w = _pick(item, _LAT_KEYS), _pick(item, _LNG_KEYS), _pick(item, _INT_KEYS)
        else:
            lat, lng, w = item
        return GeoPoint(float(lat), float(lng), float(w))
    except (KeyError, TypeError, ValueError, OverflowError):
        return None


class PointStore:
    """Holds the current immutable snapshot of weighted observations.

    Replacement builds a fresh tuple and swaps the reference, so a reader
    always sees either the old or the new snapshot in full.
    """

    def __init__(self, points: Iterable[Any] = ()) -> None:
        self._snapshot: Tuple[GeoPoint, ...] = ()
        self.set_points(points)

    def set_points(self, points: Iterable[Any]) -> int:
        accepted = []
        dropped = 0
        for item in (points if points is not None else ()):
            p = coerce_point(item)
            if p is None or not p.is_valid():
                dropped += 1
                continue
            accepted.append(p)
        self._snapshot = tuple(accepted)
        if dropped:
            log.debug("PointStore: dropped %d invalid point(s), kept %d", dropped, len(accepted))
        return len(accepted)

    def current_points(self) -> Tuple[GeoPoint, ...]:
        return self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)
