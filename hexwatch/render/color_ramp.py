"""
Teal → green → yellow heat ramp.

Hue sweeps 190° → 70° as intensity rises while lightness drops slightly
(54% → 48%) so dense cells stay legible over a dark basemap.  Saturation
is constant.  Both hue and lightness are strictly monotonic in ``t``.
"""
from __future__ import annotations

from typing import Tuple

from PyQt5 import QtGui

from .normalize import clamp01

HUE_LOW = 190.0
HUE_HIGH = 70.0
SATURATION = 0.90
LIGHT_LOW = 0.54
LIGHT_HIGH = 0.48


def ramp_hsl(t: float) -> Tuple[float, float, float]:
    """Return ``(hue_degrees, saturation, lightness)`` for intensity *t*."""
    tt = clamp01(t)
    hue = HUE_LOW + (HUE_HIGH - HUE_LOW) * tt
    light = LIGHT_LOW + (LIGHT_HIGH - LIGHT_LOW) * tt
    return hue, SATURATION, light


def ramp_color(t: float, alpha: float = 1.0) -> QtGui.QColor:
    """Fill colour for intensity *t* as a QColor."""
    hue, sat, light = ramp_hsl(t)
    return QtGui.QColor.fromHslF(hue / 360.0, sat, light, clamp01(alpha))
