"""Shared test fixtures for reliefmap pipeline tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pytest  # noqa: E402
from affine import Affine  # noqa: E402
from shapely.geometry import box  # noqa: E402

import reliefmap.config  # noqa: E402
from reliefmap.boundary import Boundary  # noqa: E402
from reliefmap.raster.grid import make_grid  # noqa: E402
from pyproj import CRS  # noqa: E402

UTM_32N = "EPSG:32632"
ORIGIN_X = 400000.0
ORIGIN_Y = 5200000.0
CELL = 100.0


def utm_grid(values, cell: float = CELL, origin=(ORIGIN_X, ORIGIN_Y)):
    """Grid in UTM 32N with square cells, upper-left corner at origin."""
    transform = Affine(cell, 0.0, origin[0], 0.0, -cell, origin[1])
    return make_grid(np.asarray(values, dtype=np.float32), transform, UTM_32N)


@pytest.fixture(autouse=True)
def reset_config():
    """Drop the cached global config so tests never leak settings."""
    reliefmap.config._config = None
    yield
    reliefmap.config._config = None


@pytest.fixture
def peak_elevation():
    """4x4 elevation grid with a single raised block in the centre."""
    return utm_grid([
        [0, 0, 0, 0],
        [0, 100, 100, 0],
        [0, 100, 100, 0],
        [0, 0, 0, 0],
    ])


@pytest.fixture
def sparse_population():
    """Population on the peak grid: one town off the peak, one near-empty cell."""
    values = np.full((4, 4), np.nan, dtype=np.float32)
    values[0, 3] = 50.0
    values[3, 0] = 0.05
    return utm_grid(values)


@pytest.fixture
def peak_boundary():
    """Boundary covering the 4x4 peak grid, in WGS84."""
    footprint = box(ORIGIN_X, ORIGIN_Y - 4 * CELL, ORIGIN_X + 4 * CELL, ORIGIN_Y)
    return Boundary(geometry=footprint, crs=CRS.from_user_input(UTM_32N)).to_crs(CRS.from_epsg(4326))
