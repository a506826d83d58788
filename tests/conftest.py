"""
Root conftest.py — headless Qt application and shared fixtures.

Qt runs on the ``offscreen`` platform so widgets, timers and queued
cross-thread calls work without a display.
"""

import os
import time

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import h3
import pytest
from PyQt5 import QtCore, QtWidgets


@pytest.fixture(scope="session")
def qapp():
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


@pytest.fixture
def wait_until(qapp):
    """Pump the Qt event loop until *predicate* holds or *timeout* passes."""

    def _wait(predicate, timeout=3.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            qapp.processEvents(QtCore.QEventLoop.AllEvents, 20)
            if predicate():
                return True
            time.sleep(0.005)
        qapp.processEvents()
        return predicate()

    return _wait


@pytest.fixture
def pump(qapp):
    """Run the event loop for a fixed time."""

    def _pump(seconds=0.1):
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline:
            qapp.processEvents(QtCore.QEventLoop.AllEvents, 20)
            time.sleep(0.005)

    return _pump


class FakeLayer:
    """Drawing surface that records what the scheduler draws."""

    def __init__(self):
        self.cells = []
        self.clears = 0

    def clear(self):
        self.clears += 1
        self.cells = []

    def add_cell(self, geometry, count, color):
        self.cells.append((geometry.cell, count, color))

    @property
    def cell_ids(self):
        return [c for c, _, _ in self.cells]


@pytest.fixture
def layer():
    return FakeLayer()


def sf_cells(n, res=9):
    """*n* distinct valid H3 cells around San Francisco."""
    origin = h3.latlng_to_cell(37.7749, -122.4194, res)
    cells = sorted(h3.grid_disk(origin, 3))
    assert len(cells) >= n
    return cells[:n]


@pytest.fixture
def cells():
    return sf_cells(12)
