"""Geographic envelope of the rendered cells."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class ViewBounds:
    """Lat/lon bounding box spanning all drawn cell geometry."""
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @property
    def center(self) -> Tuple[float, float]:
        return (
            (self.min_lat + self.max_lat) / 2.0,
            (self.min_lon + self.max_lon) / 2.0,
        )

    def contains(self, lat: float, lon: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lon <= lon <= self.max_lon
        )


class BoundsAccumulator:
    """Running envelope, grown one cell at a time during a render."""

    def __init__(self) -> None:
        self._min_lat = 90.0
        self._max_lat = -90.0
        self._min_lon = 180.0
        self._max_lon = -180.0
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def extend(self, bounds: Tuple[float, float, float, float]) -> None:
        """Grow by a shapely-style ``(min_lon, min_lat, max_lon, max_lat)``."""
        min_lon, min_lat, max_lon, max_lat = bounds
        self._min_lat = min(self._min_lat, min_lat)
        self._max_lat = max(self._max_lat, max_lat)
        self._min_lon = min(self._min_lon, min_lon)
        self._max_lon = max(self._max_lon, max_lon)
        self._count += 1

    def finalize(self) -> Optional[ViewBounds]:
        if self._count == 0:
            return None
        if self._min_lat > self._max_lat or self._min_lon > self._max_lon:
            return None
        return ViewBounds(
            min_lat=self._min_lat,
            min_lon=self._min_lon,
            max_lat=self._max_lat,
            max_lon=self._max_lon,
        )
