"""Map widget surface and main window wiring (offscreen)."""

import h3
import pytest
from PyQt5 import QtGui

from hexwatch.config import RefreshConfig
from hexwatch.geo.cell_codec import cell_to_geometry
from hexwatch.geo.view_bounds import ViewBounds
from hexwatch.gui.map_widget import HexMapWidget
from hexwatch.gui_main import MainWindow
from hexwatch.ingest import relay_client
from hexwatch.ingest.drilldown import LOADED
from hexwatch.ingest.relay_client import CellEvent, WorldStats
from hexwatch.render.batch import CellBatch, CellCount


class TestHexMapWidget:
    def test_add_and_clear(self, qapp, cells):
        w = HexMapWidget()
        for c in cells[:3]:
            w.add_cell(cell_to_geometry(c), 1, QtGui.QColor("red"))
        assert w.cell_count == 3
        assert w.cell_ids() == cells[:3]
        w.clear()
        assert w.cell_count == 0

    def test_north_is_up(self, qapp):
        w = HexMapWidget()
        assert w.project(10, 0).y() < w.project(-10, 0).y()
        assert w.project(0, 10).x() > w.project(0, -10).x()

    def test_polar_latitudes_are_clamped(self, qapp):
        w = HexMapWidget()
        assert w.project(90, 0) == w.project(89, 0)

    def test_longitudes_past_180_continue_off_the_edge(self, qapp):
        w = HexMapWidget()
        edge = w.project(0, 180.0).x()
        assert w.project(0, 180.5).x() > edge
        assert w.project(0, 180.5).x() - edge == pytest.approx(
            edge - w.project(0, 179.5).x()
        )
        assert w.project(0, -180.5).x() < w.project(0, -180.0).x()

    def test_antimeridian_cell_stays_compact(self, qapp):
        w = HexMapWidget()
        geom = cell_to_geometry(h3.latlng_to_cell(0.0, 179.999, 3))
        ring = w._project_ring(geom.boundary).boundingRect()
        assert ring.width() < 500.0     # km; the world is ~40,000 km wide

        min_lon, min_lat, max_lon, max_lat = geom.bounds
        fit = w.bounds_rect(ViewBounds(min_lat, min_lon, max_lat, max_lon))
        assert fit.width() < 500.0
        assert fit.contains(ring.center())

    def test_fit_rect_has_minimum_span_and_padding(self, qapp):
        w = HexMapWidget()
        point = ViewBounds(37.77, -122.42, 37.77, -122.42)
        rect = w.bounds_rect(point)
        expected = w.MIN_FIT_SPAN_M * w.SCENE_SCALE * (1 + 2 * w.FIT_PADDING)
        assert rect.width() == pytest.approx(expected)
        assert rect.height() == pytest.approx(expected)

    def test_fit_without_bounds_is_a_no_op(self, qapp):
        w = HexMapWidget()
        w.resize(400, 300)
        before = w._view.transform()
        w.fit_to_bounds(None)
        assert w._view.transform() == before

    def test_fit_zooms_to_cells(self, qapp, cells):
        w = HexMapWidget()
        w.resize(400, 300)
        geom = cell_to_geometry(cells[0])
        min_lon, min_lat, max_lon, max_lat = geom.bounds
        w.fit_to_bounds(ViewBounds(min_lat, min_lon, max_lat, max_lon))
        assert w._view.transform().m11() > 1.0


@pytest.fixture
def offline_relay(monkeypatch, tmp_path, cells):
    monkeypatch.setenv("HEXWATCH_HOME", str(tmp_path))
    batch = CellBatch.from_counts(CellCount(c, 10 * (i + 1)) for i, c in enumerate(cells[:5]))
    monkeypatch.setattr(relay_client, "fetch_cells", lambda *a, **k: batch)
    monkeypatch.setattr(relay_client, "fetch_stats", lambda *a, **k: WorldStats(active_nodes=7))
    monkeypatch.setattr(
        relay_client, "fetch_events",
        lambda *a, **k: [CellEvent(ts="2026-10-17T10:00:00Z", id="evt")],
    )
    return batch


class TestMainWindow:
    def test_load_then_click_resolves_count(self, qapp, offline_relay, cells, wait_until):
        win = MainWindow(RefreshConfig())
        try:
            win.start()
            assert wait_until(lambda: win.map.cell_count == 5 and not win.controller.is_loading)
            assert win.as_of.text().startswith("as-of: ")
            assert win.stats.values()["active_nodes"][0] == "7"

            win.map.cell_clicked.emit(cells[2])
            assert win.drilldown.selection.count == 30
            assert wait_until(lambda: win.drilldown.selection.status == LOADED)
            assert not win.drawer.isHidden()
            assert "count: 30" in win.drawer.meta.text()
        finally:
            win.close()

    def test_clear_empties_map_and_closes_drawer(self, qapp, offline_relay, cells, wait_until):
        win = MainWindow(RefreshConfig())
        try:
            win.start()
            assert wait_until(lambda: win.map.cell_count == 5 and not win.controller.is_loading)
            win.map.cell_clicked.emit(cells[0])
            win.clear_map()
            assert win.map.cell_count == 0
            assert win.scheduler.lookup(cells[0]) is None
            assert win.drilldown.selection is None
            assert win.drawer.isHidden()
        finally:
            win.close()

    def test_embed_ignores_clicks(self, qapp, offline_relay, cells, wait_until):
        win = MainWindow(RefreshConfig(embed=True))
        try:
            win.start()
            assert wait_until(lambda: win.map.cell_count == 5 and not win.controller.is_loading)
            win.map.cell_clicked.emit(cells[0])
            assert win.drilldown.selection is None
        finally:
            win.close()

    def test_relay_edit_is_persisted(self, qapp, offline_relay, tmp_path):
        import json

        from hexwatch.config import load_relay_url, preferences_path

        win = MainWindow(RefreshConfig())
        try:
            win.relay_edit.setText("http://elsewhere:8787/")
            win.relay_edit.editingFinished.emit()
            assert win.controller.config.relay_url == "http://elsewhere:8787"
            assert load_relay_url() == "http://elsewhere:8787"
            saved = json.loads(preferences_path().read_text())
            assert saved["relay_url"] == win.controller.config.relay_url
        finally:
            win.close()
