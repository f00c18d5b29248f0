"""Raster modules for elevation, population, terrain analysis and compositing."""

from reliefmap.raster.composite import CompositeLayers, composite, resample_to_match
from reliefmap.raster.elevation import load_elevation
from reliefmap.raster.grid import GridGeometry, make_grid
from reliefmap.raster.population import load_population
from reliefmap.raster.terrain import TerrainProducts, derive_hillshade

__all__ = [
    "load_elevation",
    "load_population",
    # Terrain analysis
    "derive_hillshade",
    "TerrainProducts",
    # Compositing
    "composite",
    "resample_to_match",
    "CompositeLayers",
    "GridGeometry",
    "make_grid",
]
