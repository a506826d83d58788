"""Relay API ingestion: bounded HTTP fetches and periodic reloads."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 5.0  # seconds


@dataclass
class FetchResult:
    """Outcome of one JSON GET.

    ``ok`` is True only for a 2xx response whose body is a JSON object
    carrying ``"ok": true``.  Transport errors, timeouts, bad status,
    unparseable bodies and a missing/false ``ok`` flag all fold into
    ``ok=False`` with ``error`` describing why.
    """
    ok: bool
    data: Any = None
    status: Optional[int] = None
    error: str = ""


def fetch_json(
    url: str,
    *,
    params: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
) -> FetchResult:
    """GET *url* and decode a JSON body, never raising for network faults."""
    try:
        resp = requests.get(url, params=params, timeout=timeout)
    except requests.Timeout as exc:
        log.warning("Timeout after %.1fs on %s: %s", timeout, url[:80], exc)
        return FetchResult(ok=False, error=f"timeout: {exc}")
    except requests.RequestException as exc:
        log.warning("Network error on %s: %s", url[:80], exc)
        return FetchResult(ok=False, error=f"network: {exc}")

    try:
        data = resp.json()
    except ValueError:
        data = None

    if not resp.ok:
        log.warning("HTTP %d from %s", resp.status_code, url[:80])
        return FetchResult(ok=False, data=data, status=resp.status_code,
                           error=f"HTTP {resp.status_code}")
    if not isinstance(data, dict):
        log.warning("Malformed JSON from %s", url[:80])
        return FetchResult(ok=False, status=resp.status_code, error="malformed response")
    if data.get("ok") is not True:
        log.warning("Relay reported not-ok from %s: %s", url[:80], data.get("error", "-"))
        return FetchResult(ok=False, data=data, status=resp.status_code,
                           error=str(data.get("error") or "not ok"))
    return FetchResult(ok=True, data=data, status=resp.status_code)
