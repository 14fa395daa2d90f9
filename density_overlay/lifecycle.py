# density_overlay/lifecycle.py
from __future__ import annotations
from collections import deque
from contextlib import ExitStack
from typing import Any, Callable, Deque, Iterable, Optional, Protocol
import enum
import logging

from .compositor import DensityCompositor, Surface
from .config import OverlayConfig, get_config
from .points import PointStore
from .projection import MapHost, OverlayContainer, ProjectionAdapter

log = logging.getLogger("ComplaintMap")


# -------- Errors --------
class OverlayStateError(RuntimeError):
    """Operation not allowed in the overlay's current lifecycle state."""


class OverlayDetachedError(OverlayStateError):
    """The overlay was unmounted; build a new instance to attach again."""


class OverlayState(enum.Enum):
    UNATTACHED = "UNATTACHED"
    ATTACHED = "ATTACHED"
    DETACHED = "DETACHED"


# -------- Schedulers --------
class Scheduler(Protocol):
    def call_soon(self, callback: Callable[[], None]) -> None: ...


class QtScheduler:
    """Runs callbacks on the next turn of the Qt event loop."""

    def call_soon(self, callback: Callable[[], None]) -> None:
        from PyQt6.QtCore import QTimer
        QTimer.singleShot(0, callback)


class ManualScheduler:
    """Queues callbacks until ``run_pending`` is called (headless use, tests)."""

    def __init__(self) -> None:
        self._queue: Deque[Callable[[], None]] = deque()

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._queue.append(callback)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def run_pending(self) -> int:
        ran = 0
        while self._queue:
            self._queue.popleft()()
            ran += 1
        return ran


# -------- Overlay --------
class DensityOverlay:
    """
    Binds a density Surface to a host map widget.

    UNATTACHED --mount--> ATTACHED --unmount--> DETACHED (terminal)

    While attached, every viewport notification asks for one recomposition;
    bursts collapse into a single scheduled pass.
    """

    def __init__(self,
                 store: Optional[PointStore] = None,
                 compositor: Optional[DensityCompositor] = None,
                 scheduler: Optional[Scheduler] = None,
                 config: Optional[OverlayConfig] = None):
        self.config = config or get_config()
        self.store = store or PointStore()
        self.compositor = compositor or DensityCompositor(self.config)
        self.scheduler: Scheduler = scheduler or QtScheduler()

        self._state = OverlayState.UNATTACHED
        self._host: Optional[MapHost] = None
        self._adapter: Optional[ProjectionAdapter] = None
        self._container: Optional[OverlayContainer] = None
        self._surface: Optional[Surface] = None
        self._resources: Optional[ExitStack] = None

        self._pending = False
        self.recompose_count = 0
        self.last_painted = 0

    # ---- read-only views ----
    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def surface(self) -> Optional[Surface]:
        return self._surface

    @property
    def is_pending(self) -> bool:
        return self._pending

    # ---- data ----
    def set_points(self, points: Iterable[Any]) -> int:
        self._require_not_detached("set_points")
        kept = self.store.set_points(points)
        if self._state is OverlayState.ATTACHED:
            self.request_recompose()
        return kept

    def apply_config(self, config: OverlayConfig) -> None:
        self._require_not_detached("apply_config")
        self.config = config
        self.compositor.configure(config)
        if self._adapter is not None:
            self._adapter.margin_px = max(0.0, float(config.visibility_margin_px))
        if self._state is OverlayState.ATTACHED:
            self.request_recompose()

    # ---- lifecycle ----
    def mount(self, host: MapHost) -> None:
        if self._state is OverlayState.DETACHED:
            raise OverlayDetachedError("mount() on a detached overlay; create a new DensityOverlay")
        if self._state is not OverlayState.UNATTACHED:
            raise OverlayStateError(f"mount() while {self._state.value}")

        with ExitStack() as stack:
            adapter = ProjectionAdapter(host, self.config.visibility_margin_px)
            container = host.overlay_insertion_point()
            surface = Surface(*adapter.viewport_size())

            container.attach_surface(surface, int(self.config.overlay_zorder))
            stack.callback(container.detach_surface, surface)

            unsubscribe = host.subscribe_viewport_change(self._on_viewport_change)
            stack.callback(unsubscribe)

            self._host, self._adapter, self._container, self._surface = host, adapter, container, surface
            self._state = OverlayState.ATTACHED
            try:
                self._recompose_now()
            except Exception:
                self._state = OverlayState.UNATTACHED
                self._host = self._adapter = self._container = self._surface = None
                raise
            self._resources = stack.pop_all()

        log.info("Density overlay mounted (%dx%d, %d points)",
                 surface.width, surface.height, len(self.store))

    def unmount(self) -> None:
        if self._state is OverlayState.DETACHED:
            return
        self._state = OverlayState.DETACHED
        self._pending = False
        resources, self._resources = self._resources, None
        self._host = self._adapter = self._container = self._surface = None
        if resources is not None:
            resources.close()
        log.info("Density overlay unmounted")

    # ---- recomposition ----
    def request_recompose(self) -> bool:
        """Schedule one pass unless one is already pending. Returns True if scheduled."""
        self._require_not_detached("request_recompose")
        if self._state is not OverlayState.ATTACHED or self._pending:
            return False
        self._pending = True
        self.scheduler.call_soon(self._run_pending)
        return True

    def recompose(self) -> bool:
        """Synchronous pass. Returns False when nothing could be drawn."""
        self._require_not_detached("recompose")
        if self._state is not OverlayState.ATTACHED:
            return False
        return self._recompose_now()

    def _on_viewport_change(self, *_args) -> None:
        if self._state is not OverlayState.ATTACHED:
            log.debug("Viewport change after detach ignored")
            return
        self.request_recompose()

    def _run_pending(self) -> None:
        if not self._pending:
            return
        self._pending = False
        if self._state is OverlayState.ATTACHED:
            self._recompose_now()

    def _recompose_now(self) -> bool:
        adapter, surface, container = self._adapter, self._surface, self._container
        w, h = adapter.viewport_size()
        if w <= 0 or h <= 0:
            log.debug("Density overlay: zero-area viewport, pass skipped")
            return False
        if surface.size != (w, h):
            surface.resize(w, h)
        self.last_painted = self.compositor.compose(surface, self.store.current_points(), adapter)
        container.present(surface)
        self.recompose_count += 1
        return True

    def _require_not_detached(self, op: str) -> None:
        if self._state is OverlayState.DETACHED:
            raise OverlayDetachedError(f"{op}() called on a detached overlay")
