"""Map rendering: population density over shaded relief."""

import math
from pathlib import Path

import geopandas as gpd
import matplotlib
import matplotlib.patheffects as pe
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import structlog
import xarray as xr
from matplotlib.backends import backend_registry
from matplotlib.colors import LinearSegmentedColormap, ListedColormap, LogNorm

from reliefmap.boundary import Boundary
from reliefmap.config import RenderConfig, get_config
from reliefmap.raster.composite import CompositeLayers
from reliefmap.raster.grid import GridGeometry

logger = structlog.get_logger()


def to_pixel_table(grid: xr.DataArray) -> pd.DataFrame:
    """Convert a grid to one (x, y, value) row per cell, dropping nodata.

    Args:
        grid: Grid with x/y cell-centre coordinates.

    Returns:
        DataFrame with columns x, y, value.
    """
    xs, ys = np.meshgrid(grid["x"].values, grid["y"].values)
    values = grid.values
    valid = np.isfinite(values)
    return pd.DataFrame({
        "x": xs[valid],
        "y": ys[valid],
        "value": values[valid].astype(np.float64),
    })


def table_to_array(table: pd.DataFrame, geometry: GridGeometry) -> np.ndarray:
    """Place pixel table rows back onto a grid geometry; NaN elsewhere."""
    array = np.full(geometry.shape, np.nan, dtype=np.float32)
    if table.empty:
        return array

    rows, cols = geometry.index(table["x"].to_numpy(), table["y"].to_numpy())
    inside = (rows >= 0) & (rows < geometry.height) & (cols >= 0) & (cols < geometry.width)
    array[rows[inside], cols[inside]] = table["value"].to_numpy()[inside]
    return array


def truncated_colormap(name: str, start: float, stop: float, n: int = 256) -> ListedColormap:
    """Restrict a named colormap to the [start, stop] part of its range."""
    base = matplotlib.colormaps[name]
    return ListedColormap(base(np.linspace(start, stop, n)), name=f"{name}_{start:g}_{stop:g}")


def terrain_colormap(colors: tuple[str, ...]) -> LinearSegmentedColormap:
    """Gray ramp for the hillshade: shadow (low values) dark, lit slopes light."""
    return LinearSegmentedColormap.from_list("relief_gray", list(reversed(colors)))


def nice_scale_length(span_m: float, fraction: float = 0.2) -> float:
    """Largest 1/2/5 x 10^k length not exceeding fraction of span_m."""
    target = span_m * fraction
    if target <= 0:
        raise ValueError("Map span must be positive")
    magnitude = 10 ** math.floor(math.log10(target))
    for step in (5, 2, 1):
        if step * magnitude <= target:
            return step * magnitude
    return magnitude


def set_map_style() -> None:
    """Configure matplotlib rcParams for the map's typographic theme."""
    plt.rcParams.update({
        # Font
        "font.family": "sans-serif",
        "font.sans-serif": ["DejaVu Sans", "Arial", "Liberation Sans"],
        "font.size": 7,
        "figure.titlesize": 12,
        "figure.titleweight": "bold",
        "axes.titlesize": 8,
        # Figure
        "figure.facecolor": "white",
        "savefig.facecolor": "white",
        # Axes
        "axes.grid": False,
        "axes.facecolor": "white",
    })


def add_north_arrow(ax: plt.Axes, x: float = 0.06, y: float = 0.92, size: float = 9) -> None:
    """Add a north arrow at axes-fraction position (x, y)."""
    ax.annotate(
        "N", xy=(x, y), xycoords="axes fraction",
        fontsize=size, fontweight="bold", ha="center", va="center",
        path_effects=[pe.withStroke(linewidth=2, foreground="white")],
    )
    ax.annotate(
        "", xy=(x, y - 0.03), xytext=(x, y - 0.12),
        xycoords="axes fraction",
        arrowprops=dict(arrowstyle="-|>", lw=1.2, color="black"),
    )


def add_scale_bar(
    ax: plt.Axes,
    length_m: float | None = None,
    x: float = 0.95,
    y: float = 0.05,
) -> float:
    """Add a scale bar ending at axes-fraction position (x, y).

    Assumes the axes are in a projected CRS with metre units.

    Returns:
        The bar length in metres.
    """
    x_lim = ax.get_xlim()
    y_lim = ax.get_ylim()
    width = x_lim[1] - x_lim[0]
    height = y_lim[1] - y_lim[0]
    length_m = length_m or nice_scale_length(width)

    x1 = x_lim[0] + x * width
    x0 = x1 - length_m
    y0 = y_lim[0] + y * height
    tick = 0.012 * height

    ax.plot([x0, x1], [y0, y0], color="black", linewidth=1.5, solid_capstyle="butt")
    ax.plot([x0, x0], [y0 - tick, y0 + tick], color="black", linewidth=1)
    ax.plot([x1, x1], [y0 - tick, y0 + tick], color="black", linewidth=1)

    label = f"{length_m / 1000:g} km" if length_m >= 1000 else f"{length_m:g} m"
    ax.text(
        (x0 + x1) / 2, y0 + 1.5 * tick, label,
        ha="center", va="bottom", fontsize=6,
        path_effects=[pe.withStroke(linewidth=2, foreground="white")],
    )
    return length_m


def _display_available() -> bool:
    """Whether the active backend drives a GUI framework."""
    _, framework = backend_registry.resolve_backend(matplotlib.get_backend())
    return framework != "headless"


def render_map(
    layers: CompositeLayers,
    boundary: Boundary,
    settings: RenderConfig | None = None,
    output_path: Path | None = None,
    show: bool = False,
) -> Path:
    """Render the two-layer relief map to a PNG file.

    Args:
        layers: Terrain-only and population layers on a shared grid.
        boundary: Region outline, in the layers' CRS or convertible to it.
        settings: Render settings. Defaults to configuration.
        output_path: Output file. Defaults to settings.output_path.
        show: Also display the figure when an interactive backend is active.

    Returns:
        Path to the written image (overwritten if it already existed).
    """
    settings = settings or get_config().render
    output_path = Path(output_path or settings.output_path)
    geometry = layers.geometry

    terrain_table = to_pixel_table(layers.terrain)
    population_table = to_pixel_table(layers.population)
    logger.info(
        "Rendering map",
        terrain_rows=len(terrain_table),
        population_rows=len(population_table),
        output=str(output_path),
    )

    set_map_style()
    fig, ax = plt.subplots(figsize=(settings.width_in, settings.height_in), dpi=settings.dpi)
    try:
        extent = geometry.extent

        # Layer A: terrain where nobody lives
        ax.imshow(
            table_to_array(terrain_table, geometry),
            extent=extent,
            cmap=terrain_colormap(settings.terrain_colors),
            vmin=0.0,
            vmax=1.0,
            interpolation="nearest",
        )

        # Layer B: population on a log scale
        if population_table.empty:
            vmin, vmax = settings.colorbar_ticks[0], settings.colorbar_ticks[-1]
        else:
            vmin = float(population_table["value"].min())
            vmax = float(population_table["value"].max())
            if vmax <= vmin:
                vmax = vmin * 10
        population_image = ax.imshow(
            table_to_array(population_table, geometry),
            extent=extent,
            cmap=truncated_colormap(settings.palette, *settings.palette_range),
            norm=LogNorm(vmin=vmin, vmax=vmax),
            interpolation="nearest",
        )

        outline = gpd.GeoSeries([boundary.to_crs(geometry.crs).geometry], crs=geometry.crs)
        outline.boundary.plot(ax=ax, color="black", linewidth=settings.outline_width)

        ax.set_xlim(extent[0], extent[1])
        ax.set_ylim(extent[2], extent[3])
        ax.set_aspect("equal")
        ax.set_axis_off()

        colorbar = fig.colorbar(
            population_image,
            ax=ax,
            ticks=list(settings.colorbar_ticks),
            format="%g",
            shrink=0.55,
            aspect=18,
            pad=0.02,
        )
        colorbar.set_label(settings.legend_label)
        colorbar.outline.set_visible(False)

        add_north_arrow(ax)
        add_scale_bar(ax)

        fig.suptitle(settings.title, x=0.05, ha="left")
        ax.set_title(settings.subtitle, loc="left", color="#4d4d4d")
        fig.text(0.98, 0.02, settings.caption, ha="right", va="bottom", fontsize=5, color="#4d4d4d")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=settings.dpi, format="png", metadata={"Software": None})
        logger.info(
            "Map saved",
            path=str(output_path),
            size_px=(int(settings.width_in * settings.dpi), int(settings.height_in * settings.dpi)),
        )

        if show and _display_available():
            plt.show()
    finally:
        plt.close(fig)

    return output_path
