"""H3 boundary decoding and view envelopes."""

import h3
import pytest

from hexwatch.geo.cell_codec import CellDecodeError, _unwrap_longitudes, cell_to_geometry
from hexwatch.geo.view_bounds import BoundsAccumulator, ViewBounds


class TestCellToGeometry:
    def test_hexagon_boundary(self):
        cell = h3.latlng_to_cell(37.7749, -122.4194, 9)
        geom = cell_to_geometry(cell)
        assert geom.cell == cell
        assert len(geom.boundary) == 6
        min_lon, min_lat, max_lon, max_lat = geom.bounds
        lat, lon = h3.cell_to_latlng(cell)
        assert min_lat <= lat <= max_lat
        assert min_lon <= lon <= max_lon

    @pytest.mark.parametrize("bad", ["", "not-a-cell", "zzzzzzzzzzzzzzz", "0", None, 42])
    def test_invalid_ids_raise(self, bad):
        with pytest.raises(CellDecodeError):
            cell_to_geometry(bad)

    def test_antimeridian_ring_is_unwrapped(self):
        ring = ((10.0, 179.9), (10.1, -179.9), (10.2, -179.8), (10.1, 179.8))
        out = _unwrap_longitudes(ring)
        lons = [lon for _, lon in out]
        assert max(lons) - min(lons) < 1.0
        assert all(lon > 179 for lon in lons)

    def test_real_antimeridian_cell(self):
        geom = cell_to_geometry(h3.latlng_to_cell(0.0, 179.999, 3))
        min_lon, _, max_lon, _ = geom.bounds
        assert max_lon > 180.0
        assert max_lon - min_lon < 5.0

    def test_regular_ring_untouched(self):
        ring = ((10.0, 20.0), (10.1, 20.1), (10.2, 20.0))
        assert _unwrap_longitudes(ring) == ring


class TestBoundsAccumulator:
    def test_empty_is_none(self):
        assert BoundsAccumulator().finalize() is None

    def test_envelope(self):
        acc = BoundsAccumulator()
        acc.extend((10.0, 40.0, 11.0, 41.0))
        acc.extend((-5.0, 39.0, -4.0, 39.5))
        b = acc.finalize()
        assert b == ViewBounds(min_lat=39.0, min_lon=-5.0, max_lat=41.0, max_lon=11.0)
        assert acc.count == 2
        assert b.contains(40.0, 0.0)
        assert b.center == (40.0, 3.0)
