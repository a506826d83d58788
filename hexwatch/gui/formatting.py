"""Display text helpers shared by the stats strip and the detail drawer."""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

PLACEHOLDER = "-"


def format_int(n) -> str:
    """``12345 → "12,345"``; missing or non-finite → ``"-"``."""
    try:
        v = float(n)
    except (TypeError, ValueError):
        return PLACEHOLDER
    if not math.isfinite(v):
        return PLACEHOLDER
    return f"{int(round(v)):,}"


def format_age(seconds: Optional[float]) -> str:
    """Compact age: seconds under a minute, minutes under an hour,
    hours under two days, then days."""
    if seconds is None:
        return PLACEHOLDER
    try:
        s = float(seconds)
    except (TypeError, ValueError):
        return PLACEHOLDER
    if not math.isfinite(s) or s < 0:
        return PLACEHOLDER
    s = int(s)
    if s < 60:
        return f"{s}s"
    m = s // 60
    if m < 60:
        return f"{m}m"
    h = m // 60
    if h < 48:
        return f"{h}h"
    return f"{h // 24}d"


def age_since(when: Optional[datetime], now: Optional[datetime] = None) -> Optional[float]:
    if when is None:
        return None
    now = now or datetime.now(timezone.utc)
    return (now - when).total_seconds()


def format_as_of(completed_at: datetime, elapsed_ms: int) -> str:
    stamp = completed_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    return f"as-of: {stamp}Z • {elapsed_ms}ms"
