"""Georeferenced grid helpers shared by the raster stages."""

from dataclasses import dataclass
from typing import Any

import numpy as np
import rioxarray  # noqa: F401 - registers the .rio accessor
import xarray as xr
from affine import Affine
from pyproj import CRS


@dataclass(frozen=True)
class GridGeometry:
    """Cell geometry of a grid: origin, resolution, extent and CRS."""

    transform: Affine
    width: int
    height: int
    crs: CRS

    @classmethod
    def from_grid(cls, grid: xr.DataArray) -> "GridGeometry":
        """Read the cell geometry from a rioxarray-enabled DataArray."""
        return cls(
            transform=grid.rio.transform(),
            width=grid.rio.width,
            height=grid.rio.height,
            crs=CRS.from_user_input(grid.rio.crs),
        )

    @property
    def shape(self) -> tuple[int, int]:
        return self.height, self.width

    @property
    def extent(self) -> tuple[float, float, float, float]:
        """(left, right, bottom, top), as matplotlib's imshow expects."""
        left, top = self.transform @ (0, 0)
        right, bottom = self.transform @ (self.width, self.height)
        return left, right, bottom, top

    def matches(self, other: "GridGeometry", precision: float = 1e-6) -> bool:
        """Whether two geometries describe the same cells."""
        return (
            self.shape == other.shape
            and self.crs == other.crs
            and self.transform.almost_equals(other.transform, precision=precision)
        )

    def index(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Row/column indices of cells whose centres are at (x, y)."""
        cols, rows = ~self.transform @ (np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))
        return np.floor(rows).astype(np.int64), np.floor(cols).astype(np.int64)


def make_grid(values: np.ndarray, transform: Affine, crs: Any) -> xr.DataArray:
    """Build a float32 grid with pixel-centre coordinates from an array.

    Args:
        values: 2D array, row 0 at the top.
        transform: Affine transform of the upper-left corner.
        crs: Anything pyproj/rasterio accepts as a CRS.

    Returns:
        DataArray with dims (y, x), CRS, transform and NaN nodata.
    """
    values = np.asarray(values, dtype=np.float32)
    rows, cols = values.shape
    xs = transform.c + (np.arange(cols) + 0.5) * transform.a
    ys = transform.f + (np.arange(rows) + 0.5) * transform.e
    da = xr.DataArray(values, dims=["y", "x"], coords={"y": ys, "x": xs})
    da = da.rio.write_crs(crs)
    da = da.rio.write_transform(transform)
    return da.rio.write_nodata(np.nan, encoded=False)


def prepare_grid(da: xr.DataArray) -> xr.DataArray:
    """Normalize a freshly opened raster into a single-band float grid.

    Squeezes the band dimension, casts to float32 and marks NaN as nodata.
    """
    if da.ndim == 3 and da.shape[0] == 1:
        da = da.squeeze("band", drop=True)
    crs = da.rio.crs
    transform = da.rio.transform()
    da = da.astype(np.float32)
    # masked=True leaves the original fill value in the encoding
    da.encoding = {k: v for k, v in da.encoding.items() if k not in ("_FillValue", "missing_value")}
    da = da.rio.write_crs(crs)
    da = da.rio.write_transform(transform)
    return da.rio.write_nodata(np.nan, encoded=False)


def with_values(template: xr.DataArray, values: np.ndarray) -> xr.DataArray:
    """New grid with template's coordinates and georeferencing, new values."""
    return template.copy(data=np.asarray(values, dtype=np.float32))
