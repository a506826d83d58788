"""
World stats strip — four value/sub-line tiles above the map.

  active nodes │ events │ unique cells │ freshness

When the stats endpoint fails the strip shows a fixed fallback
("30,000+" active nodes, "-" elsewhere) rather than an error.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Tuple

from PyQt5 import QtCore, QtWidgets

from ..ingest.relay_client import WorldStats
from .formatting import PLACEHOLDER, age_since, format_age, format_int

FALLBACK_ACTIVE_NODES = "30,000+"

_TILE_SS = (
    "QFrame { background: rgba(10,16,24,220); border: 1px solid #142232; }"
)
_VALUE_SS = "color: #d0e4f0; font-size: 18px; font-weight: bold; border: none;"
_SUB_SS = "color: #607890; font-size: 10px; border: none;"
_TITLE_SS = "color: #4a6078; font-size: 9px; letter-spacing: 1px; border: none;"


class _StatTile(QtWidgets.QFrame):
    def __init__(self, title: str, parent=None):
        super().__init__(parent)
        self.setStyleSheet(_TILE_SS)
        lay = QtWidgets.QVBoxLayout(self)
        lay.setContentsMargins(10, 6, 10, 6)
        lay.setSpacing(1)
        self.title = QtWidgets.QLabel(title.upper())
        self.title.setStyleSheet(_TITLE_SS)
        self.value = QtWidgets.QLabel(PLACEHOLDER)
        self.value.setStyleSheet(_VALUE_SS)
        self.sub = QtWidgets.QLabel("")
        self.sub.setStyleSheet(_SUB_SS)
        lay.addWidget(self.title)
        lay.addWidget(self.value)
        lay.addWidget(self.sub)

    def set(self, value: str, sub: Optional[str] = None) -> None:
        self.value.setText(value)
        if sub is not None:
            self.sub.setText(sub)


class StatsPanel(QtWidgets.QWidget):
    """Active nodes, events, unique cells and last-event freshness."""

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        lay = QtWidgets.QHBoxLayout(self)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.setSpacing(6)
        self.active_nodes = _StatTile("Active nodes")
        self.events = _StatTile("Events")
        self.cells = _StatTile("Unique cells")
        self.freshness = _StatTile("Freshness")
        for tile in (self.active_nodes, self.events, self.cells, self.freshness):
            lay.addWidget(tile, 1)

    def show_stats(
        self,
        stats: WorldStats,
        hours: float,
        res: int,
        now: Optional[datetime] = None,
    ) -> None:
        self.active_nodes.set(
            format_int(stats.active_nodes),
            f"total nodes: {format_int(stats.nodes_total)}",
        )
        self.events.set(format_int(stats.events_total), f"last {hours:g}h")
        shown_res = stats.res if stats.res is not None else res
        self.cells.set(format_int(stats.unique_cells), f"H3 res {shown_res}")

        last_time = stats.last_event.time
        if last_time is not None:
            self.freshness.set(
                f"{format_age(age_since(last_time, now))} ago",
                f"last: {stats.last_event.id}" if stats.last_event.id else "last event",
            )
        else:
            self.freshness.set(PLACEHOLDER, "no events")

    def show_fallback(self) -> None:
        self.active_nodes.set(FALLBACK_ACTIVE_NODES, "fallback")
        self.events.set(PLACEHOLDER)
        self.cells.set(PLACEHOLDER)
        self.freshness.set(PLACEHOLDER)

    def values(self) -> Dict[str, Tuple[str, str]]:
        """Current ``(value, sub)`` text per tile."""
        return {
            name: (tile.value.text(), tile.sub.text())
            for name, tile in (
                ("active_nodes", self.active_nodes),
                ("events", self.events),
                ("cells", self.cells),
                ("freshness", self.freshness),
            )
        }
