"""Shared geospatial utility functions."""

from pyproj import CRS


def get_utm_crs(lon: float, lat: float) -> CRS:
    """Get the appropriate UTM CRS for a given WGS84 coordinate.

    Args:
        lon: Longitude in degrees (-180 to 180).
        lat: Latitude in degrees (-90 to 90).

    Returns:
        pyproj CRS object for the appropriate UTM zone.
    """
    utm_zone = int((lon + 180) / 6) + 1
    utm_zone = max(1, min(60, utm_zone))
    return CRS.from_epsg((32600 if lat >= 0 else 32700) + utm_zone)


def resolve_working_crs(configured: str | None, lon: float, lat: float) -> CRS:
    """Pick the projected CRS the rasters are processed and drawn in.

    Args:
        configured: CRS string from configuration, or None for automatic.
        lon: Longitude of the region centroid.
        lat: Latitude of the region centroid.

    Returns:
        The configured CRS, or the UTM zone containing the centroid.
    """
    if configured:
        return CRS.from_user_input(configured)
    return get_utm_crs(lon, lat)
