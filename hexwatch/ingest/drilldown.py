"""
Cell drill-down — recent events for a clicked cell.

``select_cell`` publishes a "loading" summary straight away (cell id and
the count already on the map), then fetches the cell's recent events on
a worker thread.  Each selection gets a sequence number; a response
carrying an older number than the current selection is dropped, so
clicking X then Y shows Y's data even if X's request lands last.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from PyQt5 import QtCore

from ..config import RefreshConfig
from . import relay_client
from .relay_client import CellEvent

log = logging.getLogger(__name__)

LOADING = "loading"
LOADED = "ok"
FAILED = "error"


@dataclass(frozen=True)
class CellSummary:
    """What the detail panel shows for the selected cell."""
    cell: str
    count: Optional[int]
    status: str = LOADING
    events_url: str = ""
    events_returned: int = 0
    latest: Optional[CellEvent] = None
    latest_age_s: Optional[float] = None
    preview_url: Optional[str] = None
    preview_image: Optional[bytes] = None


class DrillDownFetcher(QtCore.QObject):
    """At most one open selection; newer selections replace older ones.

    Signals
    -------
    summary_changed(object)
        ``CellSummary`` for the current selection (loading, then final).
    closed()
        The selection was cleared.
    """

    summary_changed = QtCore.pyqtSignal(object)
    closed = QtCore.pyqtSignal()

    def __init__(
        self,
        config: Optional[RefreshConfig] = None,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._config = config or RefreshConfig()
        self._seq = 0
        self._selection: Optional[CellSummary] = None

    @property
    def selection(self) -> Optional[CellSummary]:
        return self._selection

    def set_config(self, config: RefreshConfig) -> None:
        self._config = config

    def select_cell(self, cell: str, count: Optional[int]) -> CellSummary:
        """Open the panel for *cell* and start fetching its events."""
        self._seq += 1
        seq = self._seq
        cfg = self._config

        summary = CellSummary(
            cell=cell,
            count=count,
            events_url=relay_client.events_url(
                cfg.relay_url, cell, limit=cfg.events_limit, res=cfg.resolution
            ),
        )
        self._selection = summary
        self.summary_changed.emit(summary)

        threading.Thread(
            target=self._fetch, args=(seq, summary, cfg),
            daemon=True, name=f"events-{cell}",
        ).start()
        return summary

    def close(self) -> None:
        self._seq += 1
        if self._selection is not None:
            log.debug("Selection %s closed", self._selection.cell)
        self._selection = None
        self.closed.emit()

    # ── Worker (background thread) ───────────────────────────────────

    def _fetch(self, seq: int, summary: CellSummary, cfg: RefreshConfig) -> None:
        try:
            result = self._build_summary(summary, cfg)
        except Exception as exc:
            log.error("Events fetch error for %s: %s", summary.cell, exc)
            result = replace(summary, status=FAILED)
        QtCore.QMetaObject.invokeMethod(
            self, "_on_summary",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(int, seq),
            QtCore.Q_ARG(object, result),
        )

    @staticmethod
    def _build_summary(summary: CellSummary, cfg: RefreshConfig) -> CellSummary:
        events = relay_client.fetch_events(
            cfg.relay_url,
            summary.cell,
            limit=cfg.events_limit,
            res=cfg.resolution,
            timeout=cfg.events_timeout_s,
        )
        if events is None:
            return replace(summary, status=FAILED)

        latest = events[0] if events else None
        age = None
        preview_url = None
        preview = None
        if latest is not None:
            t = latest.time
            if t is not None:
                age = (datetime.now(timezone.utc) - t).total_seconds()
            if latest.preview_url:
                preview_url = relay_client.resolve_preview_url(
                    cfg.relay_url, latest.preview_url
                )
                preview = relay_client.fetch_preview(
                    preview_url, timeout=cfg.events_timeout_s
                )

        return replace(
            summary,
            status=LOADED,
            events_returned=len(events),
            latest=latest,
            latest_age_s=age,
            preview_url=preview_url,
            preview_image=preview,
        )

    # ── Result handler (main thread) ─────────────────────────────────

    @QtCore.pyqtSlot(int, object)
    def _on_summary(self, seq: int, summary: CellSummary) -> None:
        if seq != self._seq or self._selection is None:
            log.debug("Dropping stale events response for %s", summary.cell)
            return
        self._selection = summary
        self.summary_changed.emit(summary)
