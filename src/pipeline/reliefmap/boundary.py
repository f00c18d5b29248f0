"""Administrative boundary retrieval from GADM."""

import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import geopandas as gpd
import httpx
import structlog
from pyproj import CRS, Transformer
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as shapely_transform
from shapely.ops import unary_union

from reliefmap.config import get_config

logger = structlog.get_logger()


@dataclass(frozen=True)
class Boundary:
    """A dissolved administrative boundary with its CRS."""

    geometry: BaseGeometry
    crs: CRS

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Get bounds in the boundary's CRS."""
        return self.geometry.bounds

    @property
    def centroid_lonlat(self) -> tuple[float, float]:
        """Centroid of the boundary as WGS84 (lon, lat)."""
        centroid = self.to_crs(CRS.from_epsg(4326)).geometry.centroid
        return centroid.x, centroid.y

    def to_crs(self, crs: Any) -> "Boundary":
        """Return a copy of the boundary reprojected to another CRS."""
        dst_crs = CRS.from_user_input(crs)
        if dst_crs == self.crs:
            return self
        transformer = Transformer.from_crs(self.crs, dst_crs, always_xy=True)
        return Boundary(
            geometry=shapely_transform(transformer.transform, self.geometry),
            crs=dst_crs,
        )


def gadm_url(iso3: str, level: int, template: str | None = None) -> str:
    """Build the GADM GeoJSON URL for a country and administrative level."""
    template = template or get_config().boundary.gadm_url
    return template.format(iso3=iso3.upper(), level=level)


def default_cache_dir() -> Path:
    """Temporary directory the boundary download is written to."""
    return Path(tempfile.gettempdir()) / "reliefmap"


def load_boundary(
    iso3: str | None = None,
    level: int | None = None,
    cache_dir: Path | None = None,
    client: httpx.Client | None = None,
) -> Boundary:
    """Load the administrative boundary for a country.

    The GeoJSON layer is downloaded once per temporary directory and
    dissolved into a single (multi)polygon.

    Args:
        iso3: ISO 3166-1 alpha-3 country code. Defaults to configuration.
        level: GADM administrative level (0 = national).
        cache_dir: Where the download is stored. Defaults to the system temp dir.
        client: Optional httpx client (used for testing).

    Returns:
        Boundary in EPSG:4326.

    Raises:
        httpx.HTTPError: If the download fails.
        ValueError: If the layer contains no geometry.
    """
    config = get_config()
    iso3 = (iso3 or config.boundary.iso3).upper()
    level = config.boundary.admin_level if level is None else level
    cache_dir = cache_dir or default_cache_dir()

    path = cache_dir / f"gadm41_{iso3}_{level}.json"
    if path.exists():
        logger.debug("Using cached boundary", path=str(path))
    else:
        _download(gadm_url(iso3, level, config.boundary.gadm_url), path, client)

    gdf = gpd.read_file(path)
    if gdf.empty:
        raise ValueError(f"GADM layer for {iso3} level {level} contains no features")

    crs = CRS.from_user_input(gdf.crs) if gdf.crs else CRS.from_epsg(4326)
    geometry = unary_union([geom for geom in gdf.geometry if geom is not None])
    if geometry.is_empty:
        raise ValueError(f"GADM layer for {iso3} level {level} contains no geometry")

    boundary = Boundary(geometry=geometry, crs=crs).to_crs(CRS.from_epsg(4326))

    logger.info(
        "Boundary loaded",
        iso3=iso3,
        level=level,
        features=len(gdf),
        bounds=tuple(round(v, 4) for v in boundary.bounds),
    )
    return boundary


def _download(url: str, path: Path, client: httpx.Client | None = None) -> Path:
    """Download a file, writing it atomically to path."""
    logger.info("Downloading boundary", url=url)

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=get_config().http.timeout, follow_redirects=True)

    try:
        response = client.get(url)
        response.raise_for_status()
    finally:
        if owns_client:
            client.close()

    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_suffix(".part")
    partial.write_bytes(response.content)
    partial.replace(path)

    logger.info("Boundary downloaded", path=str(path), size_kb=len(response.content) / 1024)
    return path
