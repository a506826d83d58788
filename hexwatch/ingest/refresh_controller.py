"""
Reload controller — periodic and manual refresh of cells + stats.

Runs on the Qt event loop.  One optional repeating ``QTimer`` drives
auto-refresh; the Load button calls :meth:`RefreshController.reload`
directly.  Both go through the same path, and only one reload cycle runs
at a time: a trigger that arrives while a cycle is in flight is
coalesced into a single follow-up cycle.

Data flow
─────────
  QTimer tick / reload()
    → snapshot RefreshConfig
    → fetch_cells()  (worker thread, ~5 s bound)  ─┐  independent:
    → fetch_stats()  (worker thread, ~2 s bound)  ─┘  one failing never
                                                      blocks the other
    → GUI thread: CellRenderScheduler.render(batch)   (cells ok)
                  cells_failed                        (cells failed;
                                                       overlay untouched)
                  stats_updated / stats_failed

Usage
-----
    controller = RefreshController(scheduler, RefreshConfig())
    controller.stats_updated.connect(panel.show_stats)
    controller.start()
    controller.update_config(auto_refresh_s=30)
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from PyQt5 import QtCore

from ..config import FitMode, RefreshConfig
from ..render.scheduler import CellRenderScheduler
from . import relay_client

log = logging.getLogger(__name__)


class RefreshController(QtCore.QObject):
    """Owns the auto-refresh timer and runs fetch → render cycles.

    Signals
    -------
    cells_failed(str)
        Cells fetch failed; the current overlay is left as it is.
    stats_updated(object)
        ``WorldStats`` fetched.
    stats_failed()
        Stats fetch failed; the display should fall back.
    cycle_finished(int)
        Both fetches of the cycle have reported back.
    config_changed(object)
        The active ``RefreshConfig`` was replaced.
    status_message(str)
        Informational text for a status line.
    """

    cells_failed = QtCore.pyqtSignal(str)
    stats_updated = QtCore.pyqtSignal(object)
    stats_failed = QtCore.pyqtSignal()
    cycle_finished = QtCore.pyqtSignal(int)
    config_changed = QtCore.pyqtSignal(object)
    status_message = QtCore.pyqtSignal(str)

    def __init__(
        self,
        scheduler: CellRenderScheduler,
        config: Optional[RefreshConfig] = None,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._scheduler = scheduler
        self._config = config or RefreshConfig()

        self._timer = QtCore.QTimer(self)
        self._timer.timeout.connect(self._on_tick)

        self._cycle = 0
        self._in_flight = 0
        self._pending = False
        self._cycle_started_at = 0.0
        self._running = False

    # ── Control ───────────────────────────────────────────────────────

    @property
    def config(self) -> RefreshConfig:
        return self._config

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def timer_active(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        """Arm the auto-refresh timer and run the first reload."""
        if self._running:
            return
        self._running = True
        self._arm_timer()
        self.reload()
        log.info("RefreshController started (auto-refresh %s)",
                 f"{self._config.auto_refresh_s:g}s"
                 if self._config.auto_refresh_enabled else "off")

    def stop(self) -> None:
        self._running = False
        self._timer.stop()
        self._pending = False
        log.info("RefreshController stopped")

    def update_config(self, config: Optional[RefreshConfig] = None, **changes: Any) -> RefreshConfig:
        """Replace the config; re-arms the timer if the interval changed
        while the controller is started.

        Geometry already on the map is untouched until the next reload.
        """
        new = config if config is not None else self._config.with_changes(**changes)
        old = self._config
        self._config = new
        if new.auto_refresh_s != old.auto_refresh_s:
            self._arm_timer()
        if new != old:
            self.config_changed.emit(new)
        return new

    def set_auto_refresh(self, seconds: float) -> None:
        self.update_config(auto_refresh_s=seconds)

    def reload(self) -> bool:
        """Start a fetch → render cycle.

        Returns False if a cycle is already running; the request is then
        folded into one follow-up cycle.
        """
        if self._in_flight:
            if not self._pending:
                log.debug("Reload requested during cycle %d; coalescing", self._cycle)
            self._pending = True
            return False

        self._cycle += 1
        cycle = self._cycle
        cfg = self._config
        self._cycle_started_at = time.monotonic()
        self._in_flight = 1 if cfg.embed else 2

        threading.Thread(
            target=self._fetch_cells, args=(cycle, cfg),
            daemon=True, name=f"cells-fetch-{cycle}",
        ).start()
        if not cfg.embed:
            threading.Thread(
                target=self._fetch_stats, args=(cycle, cfg),
                daemon=True, name=f"stats-fetch-{cycle}",
            ).start()
        return True

    # ── Timer ─────────────────────────────────────────────────────────

    def _arm_timer(self) -> None:
        self._timer.stop()
        if not self._running:
            return
        every = self._config.auto_refresh_s
        if every > 0:
            self._timer.setInterval(max(1, int(every * 1000)))
            self._timer.start()
            log.info("Auto-refresh every %gs", every)
        else:
            log.info("Auto-refresh disabled")

    def _on_tick(self) -> None:
        self.reload()

    # ── Workers (background threads) ─────────────────────────────────

    def _fetch_cells(self, cycle: int, cfg: RefreshConfig) -> None:
        try:
            batch = relay_client.fetch_cells(
                cfg.relay_url,
                res=cfg.resolution,
                hours=cfg.hours,
                limit=cfg.cell_limit,
                timeout=cfg.cells_timeout_s,
            )
        except Exception as exc:
            log.error("Cells fetch error: %s", exc)
            batch = None
        QtCore.QMetaObject.invokeMethod(
            self, "_on_cells",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(int, cycle),
            QtCore.Q_ARG(object, batch),
            QtCore.Q_ARG(object, cfg),
        )

    def _fetch_stats(self, cycle: int, cfg: RefreshConfig) -> None:
        try:
            stats = relay_client.fetch_stats(
                cfg.relay_url,
                res=cfg.resolution,
                hours=cfg.hours,
                timeout=cfg.stats_timeout_s,
            )
        except Exception as exc:
            log.error("Stats fetch error: %s", exc)
            stats = None
        QtCore.QMetaObject.invokeMethod(
            self, "_on_stats",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(int, cycle),
            QtCore.Q_ARG(object, stats),
        )

    # ── Result handlers (main thread) ────────────────────────────────

    @QtCore.pyqtSlot(int, object, object)
    def _on_cells(self, cycle: int, batch, cfg: RefreshConfig) -> None:
        if batch is None:
            self.cells_failed.emit("error")
            self.status_message.emit("Cells: fetch failed, keeping previous map")
        else:
            self._scheduler.render(
                batch,
                cfg.min_count,
                cfg.scale,
                fit_mode=FitMode.NEVER if cfg.embed else cfg.fit_mode,
                started=self._cycle_started_at,
            )
            self.status_message.emit(f"Cells: {len(batch)} loaded")
        self._part_done(cycle)

    @QtCore.pyqtSlot(int, object)
    def _on_stats(self, cycle: int, stats) -> None:
        if stats is None:
            self.stats_failed.emit()
        else:
            self.stats_updated.emit(stats)
        self._part_done(cycle)

    def _part_done(self, cycle: int) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        if self._in_flight:
            return
        self.cycle_finished.emit(cycle)
        if self._pending:
            self._pending = False
            self.reload()
