"""Population density raster retrieval from WorldPop."""

import rioxarray as rxr
import structlog
import xarray as xr

from reliefmap.config import get_config
from reliefmap.raster.grid import prepare_grid

logger = structlog.get_logger()


def population_url(iso3: str, year: int, template: str | None = None) -> str:
    """Build the WorldPop 100 m country raster URL.

    Args:
        iso3: ISO 3166-1 alpha-3 country code.
        year: Population epoch.
        template: URL template. Defaults to configuration.

    Returns:
        URL of the country GeoTIFF.
    """
    template = template or get_config().population.url_template
    return template.format(year=year, iso3_upper=iso3.upper(), iso3_lower=iso3.lower())


def load_population(iso3: str | None = None, year: int | None = None) -> xr.DataArray:
    """Load the population raster for a country.

    The raster is read in its native grid; alignment with the terrain
    happens later during compositing.

    Args:
        iso3: ISO 3166-1 alpha-3 country code. Defaults to configuration.
        year: Population epoch. Defaults to configuration.

    Returns:
        Population count per cell, NaN where no data.
    """
    config = get_config()
    iso3 = iso3 or config.boundary.iso3
    year = year or config.population.year
    url = population_url(iso3, year, config.population.url_template)

    logger.info("Loading population raster", iso3=iso3, year=year, url=url)

    da = prepare_grid(rxr.open_rasterio(url, masked=True))

    res_x, res_y = da.rio.resolution()
    logger.info(
        "Population raster loaded",
        shape=da.shape,
        crs=str(da.rio.crs),
        resolution=(abs(float(res_x)), abs(float(res_y))),
        total=float(da.sum(skipna=True).values),
    )
    return da
