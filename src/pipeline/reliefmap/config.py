"""Configuration management for the relief map pipeline."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


@dataclass
class BoundaryConfig:
    """Administrative boundary source configuration."""

    iso3: str = "CHE"
    admin_level: int = 0
    gadm_url: str = "https://geodata.ucdavis.edu/gadm/gadm4.1/json/gadm41_{iso3}_{level}.json"


@dataclass
class PopulationConfig:
    """Population raster source configuration."""

    year: int = 2020
    url_template: str = (
        "https://data.worldpop.org/GIS/Population/Global_2000_2020/"
        "{year}/{iso3_upper}/{iso3_lower}_ppp_{year}_UNadj.tif"
    )
    min_density: float = 0.1  # cells at or below this are dropped from the map


@dataclass
class ElevationConfig:
    """Elevation tile service configuration."""

    zoom: int = 10
    tile_url: str = "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png"


@dataclass
class TerrainConfig:
    """Hillshade configuration."""

    exaggeration: float = 1.3
    azimuth_deg: float = 225.0
    altitude_deg: float = 40.0


@dataclass
class RenderConfig:
    """Map rendering configuration."""

    output_path: str = "switzerland_population_relief.png"
    width_in: float = 8.0
    height_in: float = 5.0
    dpi: int = 600
    palette: str = "plasma"
    palette_range: tuple[float, float] = (0.2, 1.0)
    colorbar_ticks: tuple[float, ...] = (1, 10, 100, 1000)
    terrain_colors: tuple[str, ...] = ("#f5f5f5", "#bdbdbd", "#737373", "#252525")
    outline_width: float = 0.3
    title: str = "Switzerland"
    subtitle: str = "Population density over shaded relief"
    caption: str = "Data: WorldPop 2020 (100 m), GADM 4.1, AWS Terrain Tiles (z10)"
    legend_label: str = "Population per cell"


@dataclass
class HttpConfig:
    """HTTP client configuration."""

    timeout: float = 60.0


@dataclass
class Config:
    """Main configuration container."""

    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)
    population: PopulationConfig = field(default_factory=PopulationConfig)
    elevation: ElevationConfig = field(default_factory=ElevationConfig)
    terrain: TerrainConfig = field(default_factory=TerrainConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    working_crs: str | None = None  # None = UTM zone of the boundary centroid

    @classmethod
    def load(cls, config_dir: Path | None = None) -> "Config":
        """Load configuration from files and environment variables."""
        # Load .env file if present
        env_file = Path(__file__).parent.parent / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        config = cls()

        if config_dir and config_dir.exists():
            relief_file = config_dir / "relief.yaml"
            if relief_file.exists():
                config._load_yaml(relief_file)

        # Override with environment variables
        config._load_from_env()

        return config

    def _load_yaml(self, path: Path) -> None:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
            if data:
                self._apply_yaml_config(data)

    def _apply_yaml_config(self, data: dict[str, Any]) -> None:
        """Apply YAML configuration data."""
        if "boundary" in data:
            boundary = data["boundary"]
            if "iso3" in boundary:
                self.boundary.iso3 = str(boundary["iso3"]).upper()
            if "admin_level" in boundary:
                self.boundary.admin_level = int(boundary["admin_level"])

        if "population" in data:
            population = data["population"]
            if "year" in population:
                self.population.year = int(population["year"])
            if "min_density" in population:
                self.population.min_density = float(population["min_density"])

        if "elevation" in data:
            elevation = data["elevation"]
            if "zoom" in elevation:
                self.elevation.zoom = int(elevation["zoom"])
            if "tile_url" in elevation:
                self.elevation.tile_url = elevation["tile_url"]

        if "terrain" in data:
            terrain = data["terrain"]
            if "exaggeration" in terrain:
                self.terrain.exaggeration = float(terrain["exaggeration"])
            if "azimuth_deg" in terrain:
                self.terrain.azimuth_deg = float(terrain["azimuth_deg"])
            if "altitude_deg" in terrain:
                self.terrain.altitude_deg = float(terrain["altitude_deg"])

        if "render" in data:
            render = data["render"]
            if "output_path" in render:
                self.render.output_path = render["output_path"]
            if "dpi" in render:
                self.render.dpi = int(render["dpi"])
            if "palette" in render:
                self.render.palette = render["palette"]
            if "title" in render:
                self.render.title = render["title"]
            if "subtitle" in render:
                self.render.subtitle = render["subtitle"]
            if "caption" in render:
                self.render.caption = render["caption"]

        if "working_crs" in data:
            self.working_crs = data["working_crs"]

    def _load_from_env(self) -> None:
        """Override configuration from environment variables."""
        if country := os.getenv("RELIEF_COUNTRY"):
            self.boundary.iso3 = country.upper()
        if zoom := os.getenv("RELIEF_ZOOM"):
            self.elevation.zoom = int(zoom)
        if output := os.getenv("RELIEF_OUTPUT"):
            self.render.output_path = output
        if dpi := os.getenv("RELIEF_DPI"):
            self.render.dpi = int(dpi)
        if working_crs := os.getenv("RELIEF_WORKING_CRS"):
            self.working_crs = working_crs
        if timeout := os.getenv("HTTP_TIMEOUT"):
            self.http.timeout = float(timeout)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        config_dir = Path(__file__).parent.parent / "config"
        _config = Config.load(config_dir)
    return _config


def reload_config(config_dir: Path | None = None) -> Config:
    """Reload configuration (useful for testing)."""
    global _config
    _config = Config.load(config_dir)
    return _config
