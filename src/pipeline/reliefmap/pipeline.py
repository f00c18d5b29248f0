"""End-to-end relief map pipeline."""

from pathlib import Path

import structlog
import xarray as xr

from reliefmap.boundary import load_boundary
from reliefmap.config import Config, get_config
from reliefmap.geo_utils import resolve_working_crs
from reliefmap.raster.composite import CompositeLayers, composite
from reliefmap.raster.elevation import load_elevation
from reliefmap.raster.population import load_population
from reliefmap.raster.terrain import derive_hillshade
from reliefmap.render import render_map

logger = structlog.get_logger()


def build_layers(
    population: xr.DataArray,
    elevation: xr.DataArray,
    config: Config | None = None,
) -> CompositeLayers:
    """Derive the hillshade and composite population over it.

    Args:
        population: Population grid in its native geometry.
        elevation: Elevation grid in metres, projected CRS.
        config: Pipeline configuration. Defaults to the global one.

    Returns:
        CompositeLayers on the hillshade grid.
    """
    config = config or get_config()
    terrain = derive_hillshade(elevation, config.terrain)
    return composite(terrain.hillshade, population, config.population.min_density)


def run_pipeline(
    config: Config | None = None,
    output_path: Path | None = None,
    show: bool = False,
) -> Path:
    """Fetch, process and render the population relief map.

    Runs every stage in order; any failure aborts the run.

    Args:
        config: Pipeline configuration. Defaults to the global one.
        output_path: Override for the output image path.
        show: Display the figure when an interactive backend is active.

    Returns:
        Path to the written image.
    """
    config = config or get_config()
    iso3 = config.boundary.iso3
    logger.info("Starting relief map pipeline", iso3=iso3)

    # 1. Boundary
    boundary = load_boundary(iso3, config.boundary.admin_level)
    working_crs = resolve_working_crs(config.working_crs, *boundary.centroid_lonlat)
    logger.info("Working CRS selected", crs=working_crs.to_string())

    # 2. Rasters
    population = load_population(iso3, config.population.year)
    elevation = load_elevation(boundary, config.elevation.zoom, dst_crs=working_crs)

    # 3-4. Terrain and compositing
    layers = build_layers(population, elevation, config)

    # 5. Render
    path = render_map(
        layers,
        boundary.to_crs(working_crs),
        config.render,
        output_path=output_path,
        show=show,
    )

    logger.info("Pipeline complete", output=str(path))
    return path
