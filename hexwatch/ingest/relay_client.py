"""
Relay world API client.

Three read-only endpoints, each treated as an independent, eventually
consistent snapshot:

  /v1/world/cells   ?res&hours&limit  → per-cell event counts
  /v1/world/stats   ?res&hours        → node/event totals, last event
  /v1/world/events  ?cell&limit&res   → recent events in one cell

Every fetch is timeout-bounded and returns None on any transport or
payload failure (logged, never raised).  Individual malformed records are
dropped and the rest of the payload is kept.

Usage
-----
    from hexwatch.ingest.relay_client import fetch_cells
    batch = fetch_cells("http://127.0.0.1:8787", res=9, hours=24)
    if batch is not None:
        print(len(batch), "cells")
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import requests

from . import fetch_json
from ..render.batch import CellBatch, CellCount

log = logging.getLogger(__name__)

CELLS_PATH = "/v1/world/cells"
STATS_PATH = "/v1/world/stats"
EVENTS_PATH = "/v1/world/events"


@dataclass
class LastEvent:
    ts: Optional[str] = None
    id: Optional[str] = None

    @property
    def time(self) -> Optional[datetime]:
        return parse_timestamp(self.ts)


@dataclass
class WorldStats:
    """World overview counters from the stats endpoint."""
    active_nodes: Optional[float] = None
    nodes_total: Optional[float] = None
    events_total: Optional[float] = None
    unique_cells: Optional[float] = None
    res: Optional[int] = None
    last_event: LastEvent = field(default_factory=LastEvent)


@dataclass
class CellEvent:
    ts: Optional[str]
    id: Optional[str]
    preview_url: Optional[str] = None

    @property
    def time(self) -> Optional[datetime]:
        return parse_timestamp(self.ts)


# ── Parsing helpers ───────────────────────────────────────────────────

def parse_timestamp(ts: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not ts or not isinstance(ts, str):
        return None
    try:
        dt = datetime.fromisoformat(ts.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _number(value) -> Optional[float]:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def _parse_cell(rec) -> Optional[CellCount]:
    if not isinstance(rec, dict):
        return None
    cell = str(rec.get("cell") or "").strip()
    count = _number(rec.get("count") or 0)
    if not cell or count is None or count < 0:
        log.debug("Dropping malformed cell record: %r", rec)
        return None
    return CellCount(cell=cell, count=int(count))


def parse_cells(data: dict) -> CellBatch:
    raw = data.get("cells")
    if not isinstance(raw, list):
        raw = []
    counts = [cc for cc in (_parse_cell(r) for r in raw) if cc is not None]
    unique = _number(data.get("unique_cells"))
    return CellBatch.from_counts(
        counts, unique_cells=int(unique) if unique is not None else None
    )


def parse_stats(data: dict) -> WorldStats:
    last = data.get("last_event") or {}
    if not isinstance(last, dict):
        last = {}
    res = _number(data.get("res"))
    return WorldStats(
        active_nodes=_number(data.get("active_nodes")),
        nodes_total=_number(data.get("nodes_total")),
        events_total=_number(data.get("events_total")),
        unique_cells=_number(data.get("unique_cells")),
        res=int(res) if res is not None else None,
        last_event=LastEvent(
            ts=str(last["ts"]) if last.get("ts") else None,
            id=str(last["id"]) if last.get("id") else None,
        ),
    )


def parse_events(data: dict) -> List[CellEvent]:
    raw = data.get("events")
    if not isinstance(raw, list):
        return []
    events: List[CellEvent] = []
    for rec in raw:
        if not isinstance(rec, dict):
            log.debug("Dropping malformed event record: %r", rec)
            continue
        events.append(CellEvent(
            ts=str(rec["ts"]) if rec.get("ts") else None,
            id=str(rec["id"]) if rec.get("id") else None,
            preview_url=str(rec["preview_url"]) if rec.get("preview_url") else None,
        ))
    return events


# ── URLs ──────────────────────────────────────────────────────────────

def events_url(base_url: str, cell: str, limit: int = 10, res: int = 9) -> str:
    """Fully-qualified events query for *cell* (shown as a link)."""
    req = requests.Request(
        "GET", f"{base_url}{EVENTS_PATH}",
        params={"cell": cell, "limit": str(limit), "res": str(res)},
    ).prepare()
    return req.url


def resolve_preview_url(base_url: str, preview: str) -> str:
    """Join a relay-relative preview reference onto *base_url*."""
    if preview.startswith(("http://", "https://")):
        return preview
    sep = "" if preview.startswith("/") else "/"
    return f"{base_url}{sep}{preview}"


# ── Public API ────────────────────────────────────────────────────────

def fetch_cells(
    base_url: str,
    res: int = 9,
    hours: float = 24.0,
    limit: int = 5000,
    timeout: float = 5.0,
) -> Optional[CellBatch]:
    """Fetch the per-cell count batch, or None on failure."""
    r = fetch_json(
        f"{base_url}{CELLS_PATH}",
        params={"res": str(res), "limit": str(limit), "hours": f"{hours:g}"},
        timeout=timeout,
    )
    if not r.ok:
        log.warning("Cells fetch failed: %s", r.error)
        return None
    batch = parse_cells(r.data)
    log.info("Cells: %d (res=%d, hours=%g, unique=%s)",
             len(batch), res, hours, batch.unique_cells)
    return batch


def fetch_stats(
    base_url: str,
    res: int = 9,
    hours: float = 24.0,
    timeout: float = 2.2,
) -> Optional[WorldStats]:
    """Fetch world stats, or None on failure."""
    r = fetch_json(
        f"{base_url}{STATS_PATH}",
        params={"res": str(res), "hours": f"{hours:g}"},
        timeout=timeout,
    )
    if not r.ok:
        log.warning("Stats fetch failed: %s", r.error)
        return None
    return parse_stats(r.data)


def fetch_events(
    base_url: str,
    cell: str,
    limit: int = 10,
    res: int = 9,
    timeout: float = 4.0,
) -> Optional[List[CellEvent]]:
    """Fetch recent events in *cell* (newest first), or None on failure."""
    r = fetch_json(
        f"{base_url}{EVENTS_PATH}",
        params={"cell": cell, "limit": str(limit), "res": str(res)},
        timeout=timeout,
    )
    if not r.ok:
        log.warning("Events fetch for %s failed: %s", cell, r.error)
        return None
    return parse_events(r.data)


def fetch_preview(url: str, timeout: float = 4.0) -> Optional[bytes]:
    """Download a preview image; None if unavailable."""
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        log.warning("Preview fetch failed for %s: %s", url[:80], exc)
        return None
    if resp.status_code != 200 or not resp.content:
        log.debug("Preview %s: HTTP %d, %d bytes",
                  url[:80], resp.status_code, len(resp.content or b""))
        return None
    return resp.content
