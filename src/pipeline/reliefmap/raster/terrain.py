"""Terrain analysis: slope, aspect and hillshade from an elevation grid."""

from dataclasses import dataclass

import numpy as np
import structlog
import xarray as xr
from scipy import ndimage

from reliefmap.config import TerrainConfig, get_config
from reliefmap.raster.grid import with_values

logger = structlog.get_logger()


@dataclass(frozen=True)
class TerrainProducts:
    """Container for an elevation grid and its derived products."""

    elevation: xr.DataArray
    slope: xr.DataArray
    aspect: xr.DataArray
    hillshade: xr.DataArray


def exaggerate(elevation: xr.DataArray, factor: float) -> xr.DataArray:
    """Scale elevation values vertically; georeferencing is unchanged."""
    return with_values(elevation, elevation.values.astype(np.float64) * factor)


def _cell_size(grid: xr.DataArray) -> tuple[float, float]:
    res_x, res_y = grid.rio.resolution()
    return abs(float(res_x)), abs(float(res_y))


def _gradient(elevation: xr.DataArray) -> tuple[np.ndarray, np.ndarray]:
    """East and north components of the elevation gradient (Horn, 1981).

    Any cell whose 3x3 window touches a NaN or the grid edge gets NaN,
    including a NaN cell surrounded by valid neighbours.
    """
    elev = elevation.values.astype(np.float64)
    cell_x, cell_y = _cell_size(elevation)

    kernel_x = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]]) / (8 * cell_x)
    kernel_y = np.array([[1, 2, 1], [0, 0, 0], [-1, -2, -1]]) / (8 * cell_y)

    dz_dx = ndimage.correlate(elev, kernel_x, mode="constant", cval=np.nan)
    dz_dy = ndimage.correlate(elev, kernel_y, mode="constant", cval=np.nan)

    # Zero kernel weights skip the centre cell, so restore nodata over the whole window
    nodata_mask = ndimage.maximum_filter(np.isnan(elev), size=3, mode="constant", cval=True)
    if nodata_mask.any():
        dz_dx = np.where(nodata_mask, np.nan, dz_dx)
        dz_dy = np.where(nodata_mask, np.nan, dz_dy)

    # Row 0 is the northern edge only for north-up grids
    if elevation.rio.transform().e > 0:
        dz_dy = -dz_dy

    return dz_dx, dz_dy


def calculate_slope(elevation: xr.DataArray) -> xr.DataArray:
    """Slope angle from horizontal, in radians."""
    dz_dx, dz_dy = _gradient(elevation)
    return with_values(elevation, np.arctan(np.hypot(dz_dx, dz_dy)))


def calculate_aspect(elevation: xr.DataArray) -> xr.DataArray:
    """Downhill compass direction in radians (0 = north, clockwise), in [0, 2*pi).

    Aspect is arbitrary on flat cells, where slope 0 removes it from shading.
    """
    dz_dx, dz_dy = _gradient(elevation)
    aspect = np.mod(np.arctan2(-dz_dx, -dz_dy), 2 * np.pi)
    return with_values(elevation, aspect)


def calculate_hillshade(
    slope: xr.DataArray,
    aspect: xr.DataArray,
    azimuth_deg: float = 225.0,
    altitude_deg: float = 40.0,
) -> xr.DataArray:
    """Lambertian hillshade intensity in [0, 1].

    intensity = cos(alt) * cos(slope) + sin(alt) * sin(slope) * cos(az - aspect)

    Args:
        slope: Slope in radians.
        aspect: Aspect in radians.
        azimuth_deg: Light source compass direction.
        altitude_deg: Light source angle.

    Returns:
        Hillshade grid; NaN wherever slope or aspect is NaN.
    """
    azimuth = np.radians(azimuth_deg)
    altitude = np.radians(altitude_deg)
    slope_rad = slope.values.astype(np.float64)
    aspect_rad = aspect.values.astype(np.float64)

    intensity = (
        np.cos(altitude) * np.cos(slope_rad)
        + np.sin(altitude) * np.sin(slope_rad) * np.cos(azimuth - aspect_rad)
    )
    return with_values(slope, np.clip(intensity, 0.0, 1.0))


def derive_hillshade(
    elevation: xr.DataArray,
    settings: TerrainConfig | None = None,
) -> TerrainProducts:
    """Exaggerate the elevation, then derive slope, aspect and hillshade.

    Args:
        elevation: Elevation grid in metres, in a projected CRS.
        settings: Terrain settings. Defaults to configuration.

    Returns:
        TerrainProducts sharing the elevation grid's geometry.
    """
    settings = settings or get_config().terrain
    logger.info(
        "Deriving hillshade",
        exaggeration=settings.exaggeration,
        azimuth=settings.azimuth_deg,
        altitude=settings.altitude_deg,
    )

    scaled = exaggerate(elevation, settings.exaggeration)
    slope = calculate_slope(scaled)
    aspect = calculate_aspect(scaled)
    hillshade = calculate_hillshade(slope, aspect, settings.azimuth_deg, settings.altitude_deg)

    valid = np.isfinite(hillshade.values)
    if valid.any():
        logger.info(
            "Hillshade derived",
            shape=hillshade.shape,
            valid_cells=int(valid.sum()),
            slope_max_deg=float(np.degrees(np.nanmax(slope.values))),
            intensity_mean=float(np.nanmean(hillshade.values)),
        )
    else:
        logger.warning("Hillshade has no valid cells", shape=hillshade.shape)

    return TerrainProducts(elevation=scaled, slope=slope, aspect=aspect, hillshade=hillshade)
