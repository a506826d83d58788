"""
hexwatch — live H3 cell heatmap of relay events.

Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │  MainWindow                                              │
    │                                                          │
    │  controls ──▶ RefreshController ──(QTimer / Load)──┐     │
    │                 │ fetch_cells  (worker thread)     │     │
    │                 │ fetch_stats  (worker thread)     │     │
    │                 ▼                                  │     │
    │        CellRenderScheduler ──chunks──▶ HexMapWidget│     │
    │                 │ RenderedCellIndex                │     │
    │  cell click ────┘ lookup ──▶ DrillDownFetcher ──▶ DetailDrawer
    │  StatsPanel ◀── stats_updated / stats_failed             │
    └──────────────────────────────────────────────────────────┘
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from .config import (
    FitMode,
    RefreshConfig,
    Scale,
    config_from_args,
    load_relay_url,
    normalize_base_url,
    save_relay_url,
)
from .gui.detail_drawer import DetailDrawer
from .gui.formatting import format_as_of
from .gui.map_widget import HexMapWidget
from .gui.stats_panel import StatsPanel
from .ingest.drilldown import DrillDownFetcher
from .ingest.refresh_controller import RefreshController
from .logger import setup_logging
from .render.scheduler import CellRenderScheduler, RenderResult

log = logging.getLogger(__name__)

_CTRL_SS = (
    "QLabel { color: #607890; font-size: 10px; }"
    "QPushButton { background: #0c1624; color: #a0b8d0; border: 1px solid #142232; "
    "padding: 3px 10px; }"
    "QPushButton:hover { color: #00ccff; border-color: #00ccff; }"
)


class MainWindow(QtWidgets.QMainWindow):
    """Controls, stats strip, map and detail drawer."""

    def __init__(self, config: RefreshConfig, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.setWindowTitle("hexwatch — live cell map")
        self.resize(1280, 800)
        embed = config.embed

        self.map = HexMapWidget(interactive=not embed, fill_opacity=config.fill_opacity)
        self.scheduler = CellRenderScheduler(self.map, fit_mode=config.fit_mode, parent=self)
        self.controller = RefreshController(self.scheduler, config, parent=self)
        self.drilldown = DrillDownFetcher(config, parent=self)
        self.stats = StatsPanel()
        self.drawer = DetailDrawer()

        central = QtWidgets.QWidget()
        outer = QtWidgets.QVBoxLayout(central)
        outer.setContentsMargins(6, 6, 6, 6)
        outer.setSpacing(6)

        self._controls = self._build_controls(config)
        outer.addWidget(self._controls)
        outer.addWidget(self.stats)

        body = QtWidgets.QHBoxLayout()
        body.setSpacing(0)
        body.addWidget(self.map, 1)
        body.addWidget(self.drawer)
        outer.addLayout(body, 1)
        self.setCentralWidget(central)

        if embed:
            self._controls.hide()
            self.stats.hide()

        # ── Wiring ──
        self.scheduler.fit_requested.connect(self.map.fit_to_bounds)
        self.scheduler.render_finished.connect(self._on_render_finished)
        self.controller.cells_failed.connect(self._on_cells_failed)
        self.controller.stats_updated.connect(self._on_stats)
        self.controller.stats_failed.connect(self.stats.show_fallback)
        self.controller.config_changed.connect(self._on_config_changed)
        self.controller.status_message.connect(self.statusBar().showMessage)
        self.drilldown.summary_changed.connect(self.drawer.show_summary)
        self.drilldown.closed.connect(self.drawer.clear_and_hide)
        self.drawer.close_requested.connect(self.drilldown.close)
        if not embed:
            self.map.cell_clicked.connect(self._on_cell_clicked)

        if embed:
            self.statusBar().hide()

    # ── Controls ──────────────────────────────────────────────────────

    def _build_controls(self, cfg: RefreshConfig) -> QtWidgets.QWidget:
        w = QtWidgets.QWidget()
        w.setStyleSheet(_CTRL_SS)
        lay = QtWidgets.QHBoxLayout(w)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.setSpacing(6)

        def labelled(text: str, widget: QtWidgets.QWidget) -> None:
            lay.addWidget(QtWidgets.QLabel(text))
            lay.addWidget(widget)

        self.relay_edit = QtWidgets.QLineEdit(cfg.relay_url)
        self.relay_edit.setMinimumWidth(180)
        self.relay_edit.editingFinished.connect(self._on_relay_edited)
        labelled("relay", self.relay_edit)

        self.res_spin = QtWidgets.QSpinBox()
        self.res_spin.setRange(0, 15)
        self.res_spin.setValue(cfg.resolution)
        self.res_spin.valueChanged.connect(
            lambda v: self.controller.update_config(resolution=v))
        labelled("res", self.res_spin)

        self.hours_spin = QtWidgets.QDoubleSpinBox()
        self.hours_spin.setRange(0.25, 24 * 365)
        self.hours_spin.setDecimals(2)
        self.hours_spin.setValue(cfg.hours)
        self.hours_spin.valueChanged.connect(
            lambda v: self.controller.update_config(hours=v))
        labelled("hours", self.hours_spin)

        self.scale_combo = QtWidgets.QComboBox()
        self.scale_combo.addItems([s.value for s in Scale])
        self.scale_combo.setCurrentText(cfg.scale.value)
        self.scale_combo.currentTextChanged.connect(
            lambda v: self.controller.update_config(scale=v))
        labelled("scale", self.scale_combo)

        self.min_spin = QtWidgets.QSpinBox()
        self.min_spin.setRange(1, 1_000_000)
        self.min_spin.setValue(cfg.min_count)
        self.min_spin.valueChanged.connect(
            lambda v: self.controller.update_config(min_count=v))
        labelled("min", self.min_spin)

        self.auto_spin = QtWidgets.QSpinBox()
        self.auto_spin.setRange(0, 3600)
        self.auto_spin.setSuffix(" s")
        self.auto_spin.setSpecialValueText("off")
        self.auto_spin.setValue(int(cfg.auto_refresh_s))
        self.auto_spin.valueChanged.connect(self.controller.set_auto_refresh)
        labelled("auto", self.auto_spin)

        self.fit_combo = QtWidgets.QComboBox()
        self.fit_combo.addItems([m.value for m in FitMode])
        self.fit_combo.setCurrentText(cfg.fit_mode.value)
        self.fit_combo.currentTextChanged.connect(
            lambda v: self.controller.update_config(fit_mode=v))
        labelled("fit", self.fit_combo)

        btn_load = QtWidgets.QPushButton("Load")
        btn_load.clicked.connect(self.controller.reload)
        lay.addWidget(btn_load)
        btn_fit = QtWidgets.QPushButton("Fit")
        btn_fit.clicked.connect(self.fit_to_last_bounds)
        lay.addWidget(btn_fit)
        btn_clear = QtWidgets.QPushButton("Clear")
        btn_clear.clicked.connect(self.clear_map)
        lay.addWidget(btn_clear)

        lay.addStretch(1)
        self.as_of = QtWidgets.QLabel("as-of: -")
        lay.addWidget(self.as_of)
        return w

    # ── Actions ───────────────────────────────────────────────────────

    def start(self) -> None:
        self.controller.start()

    def fit_to_last_bounds(self) -> None:
        self.map.fit_to_bounds(self.scheduler.bounds)

    def clear_map(self) -> None:
        self.scheduler.clear()
        self.drilldown.close()
        self.map.set_status("")

    # ── Handlers ──────────────────────────────────────────────────────

    def _on_relay_edited(self) -> None:
        url = normalize_base_url(self.relay_edit.text())
        save_relay_url(url)
        self.controller.update_config(relay_url=url)

    def _on_config_changed(self, cfg: RefreshConfig) -> None:
        self.drilldown.set_config(cfg)
        self.scheduler.fit_mode = cfg.fit_mode

    def _on_render_finished(self, result: RenderResult) -> None:
        text = format_as_of(result.completed_at, result.elapsed_ms)
        self.as_of.setText(text)
        self.map.set_status(f"{result.drawn:,} cells  |  {text}")

    def _on_cells_failed(self, _reason: str) -> None:
        self.as_of.setText("as-of: error")

    def _on_stats(self, stats) -> None:
        cfg = self.controller.config
        self.stats.show_stats(stats, hours=cfg.hours, res=cfg.resolution)

    def _on_cell_clicked(self, cell: str) -> None:
        count = self.scheduler.lookup(cell)
        self.drilldown.select_cell(cell, count)

    def closeEvent(self, ev: QtGui.QCloseEvent) -> None:
        log.info("Shutting down...")
        self.controller.stop()
        self.scheduler.clear()
        super().closeEvent(ev)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="hexwatch — live H3 cell heatmap")
    parser.add_argument("--relay", help="Relay base URL (session override).")
    parser.add_argument("--res", type=int, help="H3 resolution (default 9).")
    parser.add_argument("--hours", type=float, help="Lookback window in hours (default 24).")
    parser.add_argument("--min-count", type=int, help="Hide cells below this count.")
    parser.add_argument("--scale", choices=[s.value for s in Scale],
                        help="Colour normalisation (default log).")
    parser.add_argument("--auto-every", type=float,
                        help="Auto-refresh interval in seconds (0 = off).")
    parser.add_argument("--fit", choices=[m.value for m in FitMode],
                        help="When to frame the rendered cells (default first).")
    parser.add_argument("--embed", action="store_true",
                        help="Map only: no controls, stats or drill-down.")
    parser.add_argument("--mini", action="store_true",
                        help="Compact view with a larger cell limit.")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main():
    parser = build_arg_parser()
    args, remaining = parser.parse_known_args()

    setup_logging(getattr(logging, args.log_level))

    config = config_from_args(args, relay_url=load_relay_url())
    log.info("Relay %s  res=%d  hours=%g  scale=%s  auto=%gs  fit=%s",
             config.relay_url, config.resolution, config.hours,
             config.scale.value, config.auto_refresh_s, config.fit_mode.value)

    sys.argv = sys.argv[:1] + remaining
    app = QtWidgets.QApplication(sys.argv)
    app.setStyle("Fusion")

    palette = QtGui.QPalette()
    palette.setColor(QtGui.QPalette.Window, QtGui.QColor("#060a10"))
    palette.setColor(QtGui.QPalette.WindowText, QtGui.QColor("#c0d0e0"))
    palette.setColor(QtGui.QPalette.Base, QtGui.QColor("#080c14"))
    palette.setColor(QtGui.QPalette.AlternateBase, QtGui.QColor("#060a10"))
    palette.setColor(QtGui.QPalette.Text, QtGui.QColor("#c0d0e0"))
    palette.setColor(QtGui.QPalette.Button, QtGui.QColor("#0c1624"))
    palette.setColor(QtGui.QPalette.ButtonText, QtGui.QColor("#c0d0e0"))
    palette.setColor(QtGui.QPalette.Highlight, QtGui.QColor("#00ccff"))
    app.setPalette(palette)

    win = MainWindow(config)
    if config.mini:
        win.resize(640, 400)
    win.show()
    win.start()

    def _sigint_handler(*_args):
        log.info("SIGINT received — shutting down gracefully...")
        win.close()

    signal.signal(signal.SIGINT, _sigint_handler)
    signal.signal(signal.SIGTERM, _sigint_handler)

    # Qt's event loop blocks Python signal delivery; wake it periodically.
    _sig_timer = QtCore.QTimer()
    _sig_timer.timeout.connect(lambda: None)
    _sig_timer.start(200)

    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
