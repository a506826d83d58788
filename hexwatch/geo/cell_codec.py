"""
H3 cell → polygon boundary decoding.

Thin glue over the ``h3`` library (v4 API).  Each cell id decodes to its
hexagon (or pentagon) boundary in lat/lon plus a ``shapely`` polygon in
lon/lat axis order, which the render scheduler uses for envelope tracking.

Cells straddling the antimeridian come back from h3 with longitudes that
jump from +180 to -180; those are unwrapped into a continuous ring
(longitudes may exceed 180) so the polygon does not span the whole globe.

Usage
-----
    geom = cell_to_geometry("8928308280fffff")
    geom.boundary   # ((lat, lon), ...)
    geom.bounds     # (min_lon, min_lat, max_lon, max_lat)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import h3
from shapely.geometry import Polygon

LatLon = Tuple[float, float]


class CellDecodeError(ValueError):
    """Raised when a cell id cannot be decoded into a boundary."""


@dataclass(frozen=True)
class CellGeometry:
    cell: str
    boundary: Tuple[LatLon, ...]
    polygon: Polygon

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.polygon.bounds


def _unwrap_longitudes(boundary: Tuple[LatLon, ...]) -> Tuple[LatLon, ...]:
    lons = [lon for _, lon in boundary]
    if max(lons) - min(lons) <= 180.0:
        return boundary
    return tuple((lat, lon + 360.0 if lon < 0 else lon) for lat, lon in boundary)


def cell_to_geometry(cell: str) -> CellGeometry:
    """Decode *cell* into its boundary.

    Raises
    ------
    CellDecodeError
        If *cell* is not a valid H3 index.
    """
    if not isinstance(cell, str) or not cell:
        raise CellDecodeError(f"invalid cell id: {cell!r}")
    try:
        if not h3.is_valid_cell(cell):
            raise CellDecodeError(f"invalid cell id: {cell!r}")
        raw = h3.cell_to_boundary(cell)
    except (ValueError, TypeError) as exc:
        if isinstance(exc, CellDecodeError):
            raise
        raise CellDecodeError(f"invalid cell id: {cell!r} ({exc})") from exc

    boundary = _unwrap_longitudes(tuple((float(lat), float(lon)) for lat, lon in raw))
    polygon = Polygon([(lon, lat) for lat, lon in boundary])
    return CellGeometry(cell=cell, boundary=boundary, polygon=polygon)
