"""Elevation retrieval from Terrarium-encoded web map tiles."""

import io
import math
from typing import Any

import httpx
import numpy as np
import structlog
import xarray as xr
from affine import Affine
from PIL import Image
from pyproj import CRS
from rasterio.enums import Resampling
from shapely.geometry import mapping

from reliefmap.boundary import Boundary
from reliefmap.config import get_config
from reliefmap.raster.grid import make_grid

logger = structlog.get_logger()

TILE_SIZE = 256
WEB_MERCATOR = CRS.from_epsg(3857)
# Half the circumference of the web mercator sphere, in metres
ORIGIN_SHIFT = 20037508.342789244


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> tuple[int, int]:
    """Get the (x, y) index of the web mercator tile containing a point.

    Args:
        lon: Longitude in degrees.
        lat: Latitude in degrees (clamped to the mercator limit).
        zoom: Tile zoom level.

    Returns:
        Tuple of (x, y) tile indices, y counted from the north.
    """
    n = 2**zoom
    lat = max(min(lat, 85.0511287798), -85.0511287798)
    lat_rad = math.radians(lat)
    x = int((lon + 180.0) / 360.0 * n)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    return max(0, min(n - 1, x)), max(0, min(n - 1, y))


def tiles_for_bounds(
    bounds: tuple[float, float, float, float],
    zoom: int,
) -> list[tuple[int, int]]:
    """List the tiles covering a WGS84 bounding box, row by row.

    Args:
        bounds: (min_lon, min_lat, max_lon, max_lat).
        zoom: Tile zoom level.

    Returns:
        List of (x, y) tile indices.
    """
    min_lon, min_lat, max_lon, max_lat = bounds
    x_min, y_min = lonlat_to_tile(min_lon, max_lat, zoom)
    x_max, y_max = lonlat_to_tile(max_lon, min_lat, zoom)
    return [(x, y) for y in range(y_min, y_max + 1) for x in range(x_min, x_max + 1)]


def tile_bounds(x: int, y: int, zoom: int) -> tuple[float, float, float, float]:
    """Get the EPSG:3857 bounds (left, bottom, right, top) of a tile."""
    size = 2 * ORIGIN_SHIFT / 2**zoom
    left = -ORIGIN_SHIFT + x * size
    top = ORIGIN_SHIFT - y * size
    return left, top - size, left + size, top


def decode_terrarium(rgb: np.ndarray) -> np.ndarray:
    """Decode Terrarium RGB pixels to elevation in metres.

    elevation = R * 256 + G + B / 256 - 32768
    """
    rgb = np.asarray(rgb, dtype=np.float32)
    return (rgb[..., 0] * 256.0 + rgb[..., 1] + rgb[..., 2] / 256.0 - 32768.0).astype(np.float32)


def fetch_tile(
    client: httpx.Client,
    x: int,
    y: int,
    zoom: int,
    url_template: str | None = None,
) -> np.ndarray:
    """Download and decode one elevation tile.

    Raises:
        httpx.HTTPError: If the request fails.
        ValueError: If the image is not a TILE_SIZE square.
    """
    url_template = url_template or get_config().elevation.tile_url
    url = url_template.format(z=zoom, x=x, y=y)

    response = client.get(url)
    response.raise_for_status()

    with Image.open(io.BytesIO(response.content)) as img:
        rgb = np.asarray(img.convert("RGB"))

    if rgb.shape[:2] != (TILE_SIZE, TILE_SIZE):
        raise ValueError(f"Tile {zoom}/{x}/{y} has unexpected shape {rgb.shape}")

    logger.debug("Fetched tile", z=zoom, x=x, y=y)
    return decode_terrarium(rgb)


def mosaic_tiles(tiles: dict[tuple[int, int], np.ndarray], zoom: int) -> xr.DataArray:
    """Assemble decoded tiles into a single EPSG:3857 elevation grid.

    Args:
        tiles: Mapping of (x, y) tile index to decoded elevation array.
        zoom: Zoom level the tiles belong to.

    Returns:
        Elevation grid covering the full tile block.
    """
    if not tiles:
        raise ValueError("No tiles to mosaic")

    xs = [x for x, _ in tiles]
    ys = [y for _, y in tiles]
    x_min, x_max, y_min, y_max = min(xs), max(xs), min(ys), max(ys)
    n_cols, n_rows = x_max - x_min + 1, y_max - y_min + 1

    mosaic = np.full((n_rows * TILE_SIZE, n_cols * TILE_SIZE), np.nan, dtype=np.float32)
    for x in range(x_min, x_max + 1):
        for y in range(y_min, y_max + 1):
            if (x, y) not in tiles:
                raise ValueError(f"Missing tile {zoom}/{x}/{y} in mosaic")
            row = (y - y_min) * TILE_SIZE
            col = (x - x_min) * TILE_SIZE
            mosaic[row:row + TILE_SIZE, col:col + TILE_SIZE] = tiles[(x, y)]

    left, _, _, top = tile_bounds(x_min, y_min, zoom)
    pixel = 2 * ORIGIN_SHIFT / 2**zoom / TILE_SIZE
    transform = Affine(pixel, 0.0, left, 0.0, -pixel, top)

    return make_grid(mosaic, transform, WEB_MERCATOR)


def clip_to_boundary(grid: xr.DataArray, boundary: Boundary) -> xr.DataArray:
    """Clip a grid to a boundary by bounding box, then by exact polygon.

    Cells outside the polygon become NaN.
    """
    grid_crs = CRS.from_user_input(grid.rio.crs)
    local = boundary.to_crs(grid_crs)

    min_x, min_y, max_x, max_y = local.bounds
    clipped = grid.rio.clip_box(minx=min_x, miny=min_y, maxx=max_x, maxy=max_y)
    clipped = clipped.rio.clip([mapping(local.geometry)], crs=grid_crs, drop=True)

    logger.debug("Clipped grid to boundary", shape=clipped.shape)
    return clipped


def load_elevation(
    boundary: Boundary,
    zoom: int | None = None,
    dst_crs: Any = None,
    client: httpx.Client | None = None,
) -> xr.DataArray:
    """Load the elevation grid covering a boundary.

    Fetches every tile intersecting the boundary's bounding box, mosaics
    them, optionally reprojects to dst_crs and clips to the boundary.

    Args:
        boundary: Region to cover.
        zoom: Tile zoom level. Defaults to configuration.
        dst_crs: Optional CRS to reproject to (bilinear).
        client: Optional httpx client (used for testing).

    Returns:
        Elevation in metres, NaN outside the boundary.
    """
    config = get_config()
    zoom = config.elevation.zoom if zoom is None else zoom

    wgs84_bounds = boundary.to_crs(CRS.from_epsg(4326)).bounds
    tile_ids = tiles_for_bounds(wgs84_bounds, zoom)
    logger.info("Loading elevation tiles", zoom=zoom, tiles=len(tile_ids), bounds=wgs84_bounds)

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=config.http.timeout, follow_redirects=True)

    try:
        tiles = {
            (x, y): fetch_tile(client, x, y, zoom, config.elevation.tile_url)
            for x, y in tile_ids
        }
    finally:
        if owns_client:
            client.close()

    grid = mosaic_tiles(tiles, zoom)
    logger.info("Elevation tiles fetched", count=len(tiles), shape=grid.shape)

    if dst_crs is not None and CRS.from_user_input(dst_crs) != WEB_MERCATOR:
        grid = grid.rio.reproject(CRS.from_user_input(dst_crs).to_wkt(), resampling=Resampling.bilinear)
        logger.info("Elevation reprojected", crs=str(grid.rio.crs), shape=grid.shape)

    grid = clip_to_boundary(grid, boundary)

    logger.info(
        "Elevation loaded",
        shape=grid.shape,
        min_m=float(grid.min(skipna=True).values),
        max_m=float(grid.max(skipna=True).values),
    )
    return grid
