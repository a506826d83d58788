"""
Cell batch model.

A ``CellBatch`` is the full set of (cell, count) pairs from one fetch
cycle.  It is immutable and replaced wholesale on every reload.

Duplicate cell ids are resolved last-write-wins: the cell keeps the
position of its first occurrence and the count of its last.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .normalize import count_range


@dataclass(frozen=True)
class CellCount:
    cell: str
    count: int


@dataclass(frozen=True)
class CellBatch:
    cells: Tuple[CellCount, ...] = ()
    unique_cells: Optional[int] = None   # server-side total, informational

    @classmethod
    def from_counts(
        cls,
        counts: Iterable[CellCount],
        unique_cells: Optional[int] = None,
    ) -> "CellBatch":
        merged = {}
        for cc in counts:
            merged[cc.cell] = cc.count
        return cls(
            cells=tuple(CellCount(cell, count) for cell, count in merged.items()),
            unique_cells=unique_cells,
        )

    def __len__(self) -> int:
        return len(self.cells)

    def filtered(self, min_count: float) -> "CellBatch":
        """Batch with cells below *min_count* removed, order preserved."""
        return CellBatch(
            cells=tuple(c for c in self.cells if c.count >= min_count),
            unique_cells=self.unique_cells,
        )

    @property
    def count_range(self) -> Optional[Tuple[int, int]]:
        return count_range(c.count for c in self.cells)
