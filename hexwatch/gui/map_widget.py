"""
World heatmap widget — QGraphicsScene-based cell overlay.

Renders H3 cells as filled polygons over a dark world canvas with a
lat/lon graticule.  The widget is the drawing surface of the
``CellRenderScheduler``: it implements ``clear()`` and
``add_cell(geometry, count, color)`` and knows nothing about batches,
normalisation or generations.

Coordinate system: EPSG:3857 (Web Mercator) projected metres, scaled by
``SCENE_SCALE`` and Y-flipped so north is up.  Latitudes are clamped to
the Mercator limit before projecting.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import pyproj
from PyQt5 import QtCore, QtGui, QtWidgets

from ..geo.cell_codec import CellGeometry
from ..geo.view_bounds import ViewBounds

log = logging.getLogger(__name__)

_MERC_LAT_LIMIT = 85.05112878

_to_mercator = pyproj.Transformer.from_crs(
    pyproj.CRS("EPSG:4326"), pyproj.CRS("EPSG:3857"), always_xy=True
)
# x extent of EPSG:3857 from -180° to 180°
_WORLD_WIDTH_M = 2.0 * _to_mercator.transform(180.0, 0.0)[0]


class CellItem(QtWidgets.QGraphicsPolygonItem):
    """One H3 cell polygon.  Carries only its id; counts live in the
    scheduler's index."""

    def __init__(self, cell: str, polygon: QtGui.QPolygonF, parent_widget: "HexMapWidget"):
        super().__init__(polygon)
        self.cell = cell
        self._parent_widget = parent_widget
        self.setToolTip(f"H3 {cell}")

    def mousePressEvent(self, event):
        if event.button() == QtCore.Qt.LeftButton:
            self._parent_widget.cell_clicked.emit(self.cell)
        super().mousePressEvent(event)


class HexMapWidget(QtWidgets.QWidget):
    """Zoomable world map holding the cell overlay.

    Signals
    -------
    cell_clicked(str)
        Emitted with the H3 id of a clicked cell.
    """

    cell_clicked = QtCore.pyqtSignal(str)

    SCENE_SCALE = 1.0 / 1000.0      # scene unit = 1 km
    FIT_PADDING = 0.12              # fraction of the bounds span added per side
    MIN_FIT_SPAN_M = 2500.0         # closest auto-zoom (about web zoom 14)

    def __init__(
        self,
        interactive: bool = True,
        fill_opacity: float = 0.64,
        parent: Optional[QtWidgets.QWidget] = None,
    ):
        super().__init__(parent)
        self._interactive = interactive
        self._fill_opacity = fill_opacity
        self._cell_items: List[CellItem] = []

        self._scene = QtWidgets.QGraphicsScene(self)
        self._scene.setBackgroundBrush(QtGui.QBrush(QtGui.QColor(10, 12, 16)))

        self._view = QtWidgets.QGraphicsView(self._scene, self)
        self._view.setRenderHints(QtGui.QPainter.Antialiasing)
        if interactive:
            self._view.setDragMode(QtWidgets.QGraphicsView.ScrollHandDrag)
        else:
            self._view.setDragMode(QtWidgets.QGraphicsView.NoDrag)
            self._view.setInteractive(False)
        self._view.setTransformationAnchor(QtWidgets.QGraphicsView.AnchorUnderMouse)
        self._view.setResizeAnchor(QtWidgets.QGraphicsView.AnchorViewCenter)
        self._view.setHorizontalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self._view.setVerticalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self._view.setViewportUpdateMode(
            QtWidgets.QGraphicsView.BoundingRectViewportUpdate
        )
        self._view.setOptimizationFlag(
            QtWidgets.QGraphicsView.DontSavePainterState, True
        )
        self._view.setStyleSheet("border: none; background: #0a0c10;")

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._view, 1)

        # ── Bottom floating status label ──
        self._status_label = QtWidgets.QLabel("", self._view)
        self._status_label.setAttribute(QtCore.Qt.WA_TransparentForMouseEvents, True)
        self._status_label.setStyleSheet(
            "color: rgba(150,170,190,220); font-family: 'Menlo', monospace; "
            "font-size: 10px; padding: 2px 6px; background: rgba(6,10,16,160);"
        )

        self._cell_pen = QtGui.QPen(QtGui.QColor(0, 0, 0, 89))
        self._cell_pen.setWidthF(0.7)
        self._cell_pen.setCosmetic(True)

        world = self._add_graticule()
        # margin so cells continuing past ±180° can be scrolled into view
        margin = world.width() / 36.0
        self._scene.setSceneRect(world.adjusted(-margin, 0, margin, 0))
        self._initial_fit_done = False

    # ── Projection ────────────────────────────────────────────────────

    def project(self, lat: float, lon: float) -> QtCore.QPointF:
        """lat/lon → scene coordinates.

        Longitudes past ±180° (unwrapped antimeridian rings) continue off
        the world edge instead of wrapping to the opposite side.
        """
        lat = max(-_MERC_LAT_LIMIT, min(_MERC_LAT_LIMIT, lat))
        shift = 0.0
        if lon > 180.0:
            lon -= 360.0
            shift = _WORLD_WIDTH_M
        elif lon < -180.0:
            lon += 360.0
            shift = -_WORLD_WIDTH_M
        x, y = _to_mercator.transform(lon, lat)
        sf = self.SCENE_SCALE
        return QtCore.QPointF((x + shift) * sf, -y * sf)

    def _project_ring(self, boundary: Iterable[Tuple[float, float]]) -> QtGui.QPolygonF:
        return QtGui.QPolygonF([self.project(lat, lon) for lat, lon in boundary])

    # ── Scene construction ────────────────────────────────────────────

    def _add_graticule(self) -> QtCore.QRectF:
        """Faint 30° lat/lon grid plus the world outline."""
        pen = QtGui.QPen(QtGui.QColor(60, 80, 100, 90))
        pen.setCosmetic(True)
        pen.setWidthF(0.6)

        top_left = self.project(_MERC_LAT_LIMIT, -180.0)
        bottom_right = self.project(-_MERC_LAT_LIMIT, 180.0)
        world = QtCore.QRectF(top_left, bottom_right)

        for lon in range(-180, 181, 30):
            p0 = self.project(_MERC_LAT_LIMIT, lon)
            p1 = self.project(-_MERC_LAT_LIMIT, lon)
            self._scene.addLine(p0.x(), p0.y(), p1.x(), p1.y(), pen).setZValue(1)
        for lat in range(-60, 61, 30):
            p0 = self.project(lat, -180.0)
            p1 = self.project(lat, 180.0)
            self._scene.addLine(p0.x(), p0.y(), p1.x(), p1.y(), pen).setZValue(1)

        frame = self._scene.addRect(world, pen)
        frame.setZValue(1)
        for item in self._scene.items():
            item.setCacheMode(QtWidgets.QGraphicsItem.DeviceCoordinateCache)
        return world

    # ── Drawing surface ───────────────────────────────────────────────

    @property
    def cell_count(self) -> int:
        return len(self._cell_items)

    def cell_ids(self) -> List[str]:
        return [item.cell for item in self._cell_items]

    def clear(self) -> None:
        """Remove every cell polygon."""
        for item in self._cell_items:
            self._scene.removeItem(item)
        self._cell_items = []

    def add_cell(self, geometry: CellGeometry, count: int, color: QtGui.QColor) -> None:
        item = CellItem(geometry.cell, self._project_ring(geometry.boundary), self)
        fill = QtGui.QColor(color)
        fill.setAlphaF(self._fill_opacity)
        item.setBrush(QtGui.QBrush(fill))
        item.setPen(self._cell_pen)
        item.setZValue(10)
        if self._interactive:
            item.setCursor(QtCore.Qt.PointingHandCursor)
        else:
            item.setAcceptedMouseButtons(QtCore.Qt.NoButton)
        self._scene.addItem(item)
        self._cell_items.append(item)

    # ── Viewport ──────────────────────────────────────────────────────

    def bounds_rect(self, bounds: ViewBounds) -> QtCore.QRectF:
        """Scene rect framing *bounds* with padding and a minimum span."""
        p0 = self.project(bounds.max_lat, bounds.min_lon)
        p1 = self.project(bounds.min_lat, bounds.max_lon)
        rect = QtCore.QRectF(p0, p1).normalized()

        min_span = self.MIN_FIT_SPAN_M * self.SCENE_SCALE
        w = max(rect.width(), min_span)
        h = max(rect.height(), min_span)
        w += 2 * w * self.FIT_PADDING
        h += 2 * h * self.FIT_PADDING
        c = rect.center()
        return QtCore.QRectF(c.x() - w / 2, c.y() - h / 2, w, h)

    def fit_to_bounds(self, bounds: Optional[ViewBounds]) -> None:
        if bounds is None:
            return
        self._view.fitInView(self.bounds_rect(bounds), QtCore.Qt.KeepAspectRatio)
        log.debug("Viewport fitted to %s", bounds)

    def set_status(self, text: str) -> None:
        self._status_label.setText(text)
        self._status_label.adjustSize()
        self._place_status()

    def _place_status(self) -> None:
        lbl = self._status_label
        lbl.move(6, max(0, self._view.height() - lbl.height() - 6))

    # ── Event handlers ────────────────────────────────────────────────

    def wheelEvent(self, event):
        """Smooth zoom anchored under the mouse cursor."""
        if not self._interactive:
            event.accept()
            return
        factor = 1.15
        if event.angleDelta().y() > 0:
            self._view.scale(factor, factor)
        else:
            self._view.scale(1.0 / factor, 1.0 / factor)
        event.accept()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._place_status()
        if not self._initial_fit_done:
            self._initial_fit_done = True
            # world view centred on 20°N like a web map's default
            self._view.fitInView(
                QtCore.QRectF(
                    self.project(70.0, -170.0), self.project(-40.0, 170.0)
                ).normalized(),
                QtCore.Qt.KeepAspectRatio,
            )
