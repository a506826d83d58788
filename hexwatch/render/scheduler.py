"""
Cell render scheduler — progressive, cancellable overlay drawing.

Turns a ``CellBatch`` into polygons on the map without blocking the Qt
event loop.  Cells are drawn in fixed-size chunks; after each chunk the
next one is re-scheduled with ``QTimer.singleShot`` so input and repaint
events are processed in between (batches run to thousands of cells).

Render flow
───────────
  render(batch, min_count, scale)
    → filter count < min_count
    → min/max over the filtered cells
    → clear layer + index, draw first chunk (same event-loop tick)
    → QTimer.singleShot → next chunk … (generation checked each time)
    → last chunk: finalise ViewBounds, apply fit policy,
      emit render_finished

Only the newest render may draw.  Each call bumps ``generation``; a
chunk whose job carries an older generation returns without drawing, so
rapid reloads and timer ticks landing mid-render never interleave.

The scheduler is the sole owner of the overlay layer and of the
``RenderedCellIndex``.  Anything that needs a cell's count (click
handlers) asks :meth:`CellRenderScheduler.lookup`.
"""
from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple, Union

from PyQt5 import QtCore, QtGui

from ..config import FitMode, Scale
from ..geo.cell_codec import CellDecodeError, CellGeometry, cell_to_geometry
from ..geo.view_bounds import BoundsAccumulator, ViewBounds
from .batch import CellBatch, CellCount
from .color_ramp import ramp_color
from .normalize import normalize

log = logging.getLogger(__name__)


class RenderedCellIndex:
    """cell id → count for the cells drawn by one render generation."""

    def __init__(self, generation: int = 0):
        self.generation = generation
        self._counts: Dict[str, int] = {}

    def get(self, cell: str) -> Optional[int]:
        return self._counts.get(cell)

    def __contains__(self, cell: object) -> bool:
        return cell in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def as_dict(self) -> Dict[str, int]:
        return dict(self._counts)

    def _record(self, cell: str, count: int) -> None:
        self._counts[cell] = count


@dataclass
class RenderResult:
    """Summary of one completed render."""
    generation: int
    drawn: int
    skipped: int
    bounds: Optional[ViewBounds]
    fitted: bool
    completed_at: datetime
    elapsed_ms: int


@dataclass
class _RenderJob:
    generation: int
    cells: Tuple[CellCount, ...]
    vmin: float
    vmax: float
    scale: Scale
    fit_mode: FitMode
    started: float
    index: RenderedCellIndex
    envelope: BoundsAccumulator = field(default_factory=BoundsAccumulator)
    pos: int = 0
    skipped: int = 0


class CellRenderScheduler(QtCore.QObject):
    """Chunked renderer for cell batches.

    Parameters
    ----------
    layer
        Drawing surface with ``clear()`` and
        ``add_cell(geometry, count, color)``.
    fit_mode : FitMode
        Default fit policy when :meth:`render` is not given one.
    chunk_size : int, optional
        Cells drawn per event-loop turn.
    decode : callable, optional
        Cell id → ``CellGeometry``; raises ``CellDecodeError`` on bad ids.

    Signals
    -------
    render_started(int)
        Emitted with the new generation when a render begins.
    render_finished(object)
        Emitted with a ``RenderResult`` when the last chunk is drawn.
        Superseded renders never emit this.
    fit_requested(object)
        Emitted with a ``ViewBounds`` when the fit policy asks the
        viewport to frame the rendered cells.
    """

    render_started = QtCore.pyqtSignal(int)
    render_finished = QtCore.pyqtSignal(object)
    fit_requested = QtCore.pyqtSignal(object)

    CHUNK_SIZE = 220        # cells per event-loop turn
    CHUNK_DELAY_MS = 0

    def __init__(
        self,
        layer,
        fit_mode: FitMode = FitMode.FIRST,
        chunk_size: Optional[int] = None,
        decode: Callable[[str], CellGeometry] = cell_to_geometry,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._layer = layer
        self._decode = decode
        self._chunk_size = max(1, chunk_size or self.CHUNK_SIZE)
        self.fit_mode = FitMode(fit_mode)

        self._generation = 0
        self._index = RenderedCellIndex()
        self._bounds: Optional[ViewBounds] = None
        self._loaded_once = False
        self._active: Optional[_RenderJob] = None
        self._last_result: Optional[RenderResult] = None

    # ── State ─────────────────────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def index(self) -> RenderedCellIndex:
        return self._index

    @property
    def bounds(self) -> Optional[ViewBounds]:
        return self._bounds

    @property
    def is_rendering(self) -> bool:
        return self._active is not None

    @property
    def last_result(self) -> Optional[RenderResult]:
        return self._last_result

    def lookup(self, cell: str) -> Optional[int]:
        """Count of *cell* in the current render, or None if not drawn."""
        return self._index.get(cell)

    # ── Control ───────────────────────────────────────────────────────

    def render(
        self,
        batch: CellBatch,
        min_count: float = 1,
        scale: Union[Scale, str] = Scale.LOG,
        *,
        fit_mode: Union[FitMode, str, None] = None,
        started: Optional[float] = None,
    ) -> RenderedCellIndex:
        """Replace the overlay with *batch*.

        Returns the new index; it fills up as chunks are drawn and is
        complete once ``render_finished`` fires.
        """
        self._generation += 1
        gen = self._generation

        kept = batch.filtered(min_count)
        cells = kept.cells
        rng = kept.count_range
        vmin, vmax = rng if rng is not None else (0, 0)

        job = _RenderJob(
            generation=gen,
            cells=cells,
            vmin=vmin,
            vmax=vmax,
            scale=Scale(scale),
            fit_mode=FitMode(fit_mode) if fit_mode is not None else self.fit_mode,
            started=started if started is not None else time.monotonic(),
            index=RenderedCellIndex(gen),
        )

        if self._active is not None:
            log.debug("Render %d supersedes %d", gen, self._active.generation)

        self._layer.clear()
        self._index = job.index
        self._bounds = None
        self._active = job
        self.render_started.emit(gen)

        log.debug(
            "Render %d: %d/%d cells after min_count=%s (range %s..%s, %s)",
            gen, len(cells), len(batch), min_count, vmin, vmax, job.scale.value,
        )
        # First chunk goes out in this tick so the cleared map is never
        # shown on its own.
        self._run_chunk(job)
        return job.index

    def clear(self) -> None:
        """Drop all geometry and abandon any in-flight render."""
        self._generation += 1
        self._active = None
        self._layer.clear()
        self._index = RenderedCellIndex(self._generation)
        self._bounds = None
        log.debug("Overlay cleared (generation %d)", self._generation)

    # ── Chunk loop ────────────────────────────────────────────────────

    def _run_chunk(self, job: _RenderJob) -> None:
        if job.generation != self._generation:
            log.debug(
                "Render %d stale (current %d), stopping at %d/%d",
                job.generation, self._generation, job.pos, len(job.cells),
            )
            return

        end = min(job.pos + self._chunk_size, len(job.cells))
        for i in range(job.pos, end):
            self._draw_cell(job, job.cells[i])
        job.pos = end

        if job.pos < len(job.cells):
            QtCore.QTimer.singleShot(
                self.CHUNK_DELAY_MS, functools.partial(self._run_chunk, job)
            )
            return

        self._finish(job)

    def _draw_cell(self, job: _RenderJob, cc: CellCount) -> None:
        try:
            geom = self._decode(cc.cell)
        except CellDecodeError as exc:
            job.skipped += 1
            log.debug("Skipping cell %r: %s", cc.cell, exc)
            return

        t = normalize(cc.count, job.vmin, job.vmax, job.scale)
        color: QtGui.QColor = ramp_color(t)
        self._layer.add_cell(geom, cc.count, color)
        job.envelope.extend(geom.bounds)
        job.index._record(cc.cell, cc.count)

    def _finish(self, job: _RenderJob) -> None:
        bounds = job.envelope.finalize()
        self._bounds = bounds
        self._active = None

        mode = job.fit_mode
        should_fit = mode is FitMode.ALWAYS or (
            mode is FitMode.FIRST and not self._loaded_once
        )
        self._loaded_once = True
        fitted = should_fit and bounds is not None

        elapsed_ms = int(round((time.monotonic() - job.started) * 1000))
        result = RenderResult(
            generation=job.generation,
            drawn=len(job.index),
            skipped=job.skipped,
            bounds=bounds,
            fitted=fitted,
            completed_at=datetime.now(timezone.utc),
            elapsed_ms=elapsed_ms,
        )
        self._last_result = result

        log.info(
            "Render %d done: %d cells drawn, %d skipped, %d ms%s",
            job.generation, result.drawn, result.skipped, elapsed_ms,
            " (fit)" if fitted else "",
        )
        if fitted:
            self.fit_requested.emit(bounds)
        self.render_finished.emit(result)
