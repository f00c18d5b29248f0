"""Compositing of population density over the hillshade grid."""

from dataclasses import dataclass

import numpy as np
import structlog
import xarray as xr
from rasterio.enums import Resampling

from reliefmap.config import get_config
from reliefmap.raster.grid import GridGeometry, with_values

logger = structlog.get_logger()


@dataclass(frozen=True)
class CompositeLayers:
    """The two disjoint map layers on the hillshade grid."""

    terrain: xr.DataArray  # hillshade where there is no population
    population: xr.DataArray  # population above the density threshold
    geometry: GridGeometry

    @property
    def terrain_cells(self) -> int:
        return int(np.isfinite(self.terrain.values).sum())

    @property
    def population_cells(self) -> int:
        return int(np.isfinite(self.population.values).sum())


def resample_to_match(source: xr.DataArray, target: xr.DataArray) -> xr.DataArray:
    """Resample a grid onto another grid's exact cell geometry (bilinear).

    Nodata stays NaN; it is never filled with zero. A source that already
    shares the target's geometry is returned as an equal copy.

    Args:
        source: Grid to resample.
        target: Grid whose geometry the output takes.

    Returns:
        Resampled grid aligned with target.
    """
    source_geometry = GridGeometry.from_grid(source)
    target_geometry = GridGeometry.from_grid(target)

    if source_geometry.matches(target_geometry):
        logger.debug("Source already aligned, skipping resample")
        return source.copy()

    logger.info(
        "Resampling to target grid",
        source_shape=source_geometry.shape,
        target_shape=target_geometry.shape,
        source_crs=str(source_geometry.crs),
        target_crs=str(target_geometry.crs),
    )

    source = source.rio.write_nodata(np.nan, encoded=False)
    resampled = source.rio.reproject_match(target, resampling=Resampling.bilinear)
    resampled = resampled.astype(np.float32).rio.write_nodata(np.nan, encoded=False)
    return resampled


def _check_aligned(a: xr.DataArray, b: xr.DataArray) -> None:
    if not GridGeometry.from_grid(a).matches(GridGeometry.from_grid(b)):
        raise ValueError("Grids do not share the same cell geometry; resample first")


def terrain_only_mask(hillshade: xr.DataArray, population: xr.DataArray) -> xr.DataArray:
    """Hillshade where population is nodata, NaN elsewhere."""
    _check_aligned(hillshade, population)
    values = np.where(np.isnan(population.values), hillshade.values, np.nan)
    return with_values(hillshade, values)


def population_mask(population: xr.DataArray, threshold: float = 0.1) -> xr.DataArray:
    """Population with values at or below threshold set to NaN."""
    values = population.values
    # NaN compares False, so nodata stays nodata
    return with_values(population, np.where(values > threshold, values, np.nan))


def composite(
    hillshade: xr.DataArray,
    population: xr.DataArray,
    threshold: float | None = None,
) -> CompositeLayers:
    """Build the terrain-only and population layers on the hillshade grid.

    Args:
        hillshade: Hillshade grid; defines the output geometry.
        population: Population grid in any geometry.
        threshold: Minimum population kept. Defaults to configuration.

    Returns:
        CompositeLayers whose two grids never both hold a value in a cell.
    """
    threshold = get_config().population.min_density if threshold is None else threshold

    aligned = resample_to_match(population, hillshade)
    terrain = terrain_only_mask(hillshade, aligned)
    people = population_mask(aligned, threshold)

    layers = CompositeLayers(
        terrain=terrain,
        population=people,
        geometry=GridGeometry.from_grid(hillshade),
    )

    logger.info(
        "Layers composited",
        terrain_cells=layers.terrain_cells,
        population_cells=layers.population_cells,
        threshold=threshold,
    )
    return layers
