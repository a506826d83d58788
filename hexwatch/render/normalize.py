"""
Count normalisation into [0, 1].

Cell counts are heavy-tailed (a handful of very busy cells, many sparse
ones), so the log scale is the default: under a linear scale the low end
of the batch washes out to a single colour.
"""
from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple, Union

from ..config import Scale

_EPS = 1e-9


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def normalize(
    value: float,
    vmin: float,
    vmax: float,
    scale: Union[Scale, str] = Scale.LOG,
) -> float:
    """Map *value* into [0, 1] relative to the batch ``[vmin, vmax]``.

    A degenerate batch (``vmax <= vmin``) renders at full intensity.
    Non-finite values map to 0.
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    if vmax <= vmin:
        return 1.0

    if scale == Scale.LOG:
        v = math.log10(1.0 + max(_EPS, value - vmin))
        m = math.log10(1.0 + max(_EPS, vmax - vmin))
        return clamp01(v / m) if m else 1.0
    return clamp01((value - vmin) / (vmax - vmin))


def count_range(counts: Iterable[float]) -> Optional[Tuple[float, float]]:
    """``(min, max)`` over *counts*, or None for an empty sequence."""
    lo = hi = None
    for c in counts:
        if lo is None or c < lo:
            lo = c
        if hi is None or c > hi:
            hi = c
    if lo is None:
        return None
    return lo, hi
