"""Tests for grid geometry helpers."""

import numpy as np
import pytest

from conftest import CELL, ORIGIN_X, ORIGIN_Y, utm_grid
from reliefmap.raster.grid import GridGeometry, with_values

pytestmark = pytest.mark.filterwarnings("error::PendingDeprecationWarning")


class TestGridGeometry:
    """Cell geometry read from a grid."""

    def test_extent(self):
        geometry = GridGeometry.from_grid(utm_grid(np.zeros((3, 4))))

        assert geometry.shape == (3, 4)
        assert geometry.extent == pytest.approx(
            (ORIGIN_X, ORIGIN_X + 4 * CELL, ORIGIN_Y - 3 * CELL, ORIGIN_Y)
        )

    def test_index_of_cell_centres(self):
        geometry = GridGeometry.from_grid(utm_grid(np.zeros((3, 4))))
        x = np.array([ORIGIN_X + 50.0, ORIGIN_X + 350.0])
        y = np.array([ORIGIN_Y - 50.0, ORIGIN_Y - 250.0])

        rows, cols = geometry.index(x, y)

        np.testing.assert_array_equal(rows, [0, 2])
        np.testing.assert_array_equal(cols, [0, 3])

    def test_matches_within_precision(self):
        base = GridGeometry.from_grid(utm_grid(np.zeros((3, 3))))
        nudged = GridGeometry.from_grid(utm_grid(np.zeros((3, 3)), origin=(ORIGIN_X + 1e-9, ORIGIN_Y)))
        shifted = GridGeometry.from_grid(utm_grid(np.zeros((3, 3)), origin=(ORIGIN_X + 0.01, ORIGIN_Y)))

        assert base.matches(nudged)
        assert not base.matches(shifted)

    def test_different_cell_size_does_not_match(self):
        base = GridGeometry.from_grid(utm_grid(np.zeros((3, 3))))
        coarse = GridGeometry.from_grid(utm_grid(np.zeros((3, 3)), cell=200.0))
        assert not base.matches(coarse)


class TestWithValues:
    def test_keeps_georeferencing(self):
        template = utm_grid(np.zeros((2, 2)))
        result = with_values(template, np.ones((2, 2), dtype=np.float64))

        assert result.dtype == np.float32
        assert GridGeometry.from_grid(result).matches(GridGeometry.from_grid(template))
        assert np.isnan(result.rio.nodata)
