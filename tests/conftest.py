import os
import sys

import matplotlib
import pytest

matplotlib.use("Agg")

# Make the repo root importable when running without an editable install
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from density_overlay.config import reset_config
from density_overlay.projection import NOT_VISIBLE


class FakeContainer:
    """Records what the overlay does to the host's rendering stack."""

    def __init__(self):
        self.attached = []      # (surface, zorder)
        self.detached = []
        self.presented = 0
        self.last_frame = None
        self.on_present = None

    def attach_surface(self, surface, zorder):
        self.attached.append((surface, zorder))

    def present(self, surface):
        self.presented += 1
        self.last_frame = surface.to_rgba8().copy()
        if self.on_present is not None:
            self.on_present()

    def detach_surface(self, surface):
        self.attached = [a for a in self.attached if a[0] is not surface]
        self.detached.append(surface)


class FakeHost:
    """Identity-ish projection: x = longitude + dx, y = latitude + dy."""

    def __init__(self, width=100, height=80):
        self.size = (width, height)
        self.offset = (0.0, 0.0)
        self.hidden = set()
        self.callbacks = []
        self.container = FakeContainer()

    def viewport_size_px(self):
        return self.size

    def project(self, latitude, longitude):
        if (latitude, longitude) in self.hidden:
            return NOT_VISIBLE
        return longitude + self.offset[0], latitude + self.offset[1]

    def subscribe_viewport_change(self, callback):
        self.callbacks.append(callback)
        return lambda: self.callbacks.remove(callback)

    def overlay_insertion_point(self):
        return self.container

    def fire(self, times=1):
        for _ in range(times):
            for cb in list(self.callbacks):
                cb()


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def host():
    return FakeHost()
