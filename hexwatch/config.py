"""
Viewer configuration and the persisted relay preference.

``RefreshConfig`` is immutable: every change builds a new value with
``dataclasses.replace`` (see :meth:`RefreshConfig.with_changes`), and each
reload cycle works on the snapshot taken when it was triggered.

The only state persisted between sessions is the relay base URL, kept as
JSON in ``~/.hexwatch/preferences.json`` (or ``$HEXWATCH_HOME``).

Usage
-----
    cfg = RefreshConfig(relay_url=load_relay_url())
    cfg = cfg.with_changes(scale="linear", auto_refresh_s=30)
"""
from __future__ import annotations

import dataclasses
import json
import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

RELAY_DEFAULT = "http://127.0.0.1:8787"

CELL_LIMIT = 5000
CELL_LIMIT_MINI = 8000

_PREFS_FILENAME = "preferences.json"


class Scale(str, Enum):
    LINEAR = "linear"
    LOG = "log"


class FitMode(str, Enum):
    FIRST = "first"
    ALWAYS = "always"
    NEVER = "never"


def _coerce_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        log.warning("Unknown %s %r, using %s", enum_cls.__name__, value, default.value)
        return default


def normalize_base_url(url: Optional[str]) -> str:
    """Strip whitespace and trailing slashes; empty → the default relay."""
    v = (url or "").strip()
    return (v or RELAY_DEFAULT).rstrip("/")


@dataclass(frozen=True)
class RefreshConfig:
    """User-controlled reload parameters.

    ``auto_refresh_s <= 0`` disables the periodic timer.
    """
    relay_url: str = RELAY_DEFAULT
    resolution: int = 9
    hours: float = 24.0
    min_count: int = 1
    scale: Scale = Scale.LOG
    auto_refresh_s: float = 0.0
    fit_mode: FitMode = FitMode.FIRST
    cell_limit: int = CELL_LIMIT

    cells_timeout_s: float = 5.0
    stats_timeout_s: float = 2.2
    events_timeout_s: float = 4.0
    events_limit: int = 10

    embed: bool = False
    mini: bool = False

    def __post_init__(self) -> None:
        # frozen: sanitise in place via object.__setattr__
        object.__setattr__(self, "relay_url", normalize_base_url(self.relay_url))
        object.__setattr__(self, "scale", _coerce_enum(Scale, self.scale, Scale.LOG))
        object.__setattr__(
            self, "fit_mode", _coerce_enum(FitMode, self.fit_mode, FitMode.FIRST)
        )
        object.__setattr__(self, "resolution", int(self.resolution))
        object.__setattr__(self, "hours", float(self.hours))
        object.__setattr__(self, "min_count", max(1, int(self.min_count)))
        interval = float(self.auto_refresh_s)
        if not math.isfinite(interval) or interval < 0:
            interval = 0.0
        object.__setattr__(self, "auto_refresh_s", interval)

    @property
    def auto_refresh_enabled(self) -> bool:
        return self.auto_refresh_s > 0

    @property
    def fill_opacity(self) -> float:
        return 0.46 if self.embed else 0.64

    def with_changes(self, **changes: Any) -> "RefreshConfig":
        return dataclasses.replace(self, **changes)


# ── Command-line overrides ────────────────────────────────────────────

def config_from_args(args, relay_url: Optional[str] = None) -> RefreshConfig:
    """Build the startup config from parsed ``argparse`` arguments.

    Only arguments that were actually given override the defaults.
    """
    changes: Dict[str, Any] = {}
    if relay_url:
        changes["relay_url"] = relay_url
    if getattr(args, "relay", None):
        changes["relay_url"] = args.relay
    for attr, field_name in (
        ("res", "resolution"),
        ("hours", "hours"),
        ("min_count", "min_count"),
        ("scale", "scale"),
        ("auto_every", "auto_refresh_s"),
        ("fit", "fit_mode"),
    ):
        value = getattr(args, attr, None)
        if value is not None:
            changes[field_name] = value
    if getattr(args, "embed", False):
        changes["embed"] = True
    if getattr(args, "mini", False):
        changes["mini"] = True
        changes["cell_limit"] = CELL_LIMIT_MINI
    return RefreshConfig(**changes)


# ── Persisted preference ──────────────────────────────────────────────

def preferences_path() -> Path:
    home = os.environ.get("HEXWATCH_HOME")
    base = Path(home) if home else Path.home() / ".hexwatch"
    return base / _PREFS_FILENAME


def load_relay_url(path: Optional[Path] = None) -> str:
    """Return the saved relay base URL, or the default if none is stored."""
    path = path or preferences_path()
    if not path.exists():
        return RELAY_DEFAULT
    try:
        data = json.loads(path.read_text())
        return normalize_base_url(data.get("relay_url"))
    except (OSError, ValueError, AttributeError) as exc:
        log.warning("Failed to read preferences %s: %s", path, exc)
        return RELAY_DEFAULT


def save_relay_url(url: str, path: Optional[Path] = None) -> None:
    path = path or preferences_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"relay_url": (url or "").strip()}, indent=2) + "\n")
        log.info("Saved relay URL preference: %s", url)
    except OSError as exc:
        log.warning("Failed to save preferences %s: %s", path, exc)
