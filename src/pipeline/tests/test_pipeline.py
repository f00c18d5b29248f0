"""End-to-end tests for the relief map pipeline.

Data loaders are patched so the pipeline runs on small synthetic grids.
"""

from unittest.mock import patch

import httpx
import numpy as np
import pytest
from PIL import Image
from pyproj import CRS

from conftest import utm_grid
from reliefmap.config import Config
from reliefmap.pipeline import build_layers, run_pipeline
from reliefmap.render import to_pixel_table


@pytest.fixture
def config(tmp_path):
    config = Config()
    config.render.dpi = 20
    config.render.output_path = str(tmp_path / "relief.png")
    return config


class TestBuildLayers:
    """Peak and town scenario on a 4x4 grid."""

    def test_sun_facing_side_brighter(self, peak_elevation, sparse_population):
        layers = build_layers(sparse_population, peak_elevation, Config())
        terrain = layers.terrain.values

        assert terrain[2, 1] > terrain[1, 2]

    def test_populated_cell_only_in_population_layer(self, peak_elevation, sparse_population):
        layers = build_layers(sparse_population, peak_elevation, Config())

        assert layers.population.values[0, 3] == pytest.approx(50.0)
        assert np.isnan(layers.terrain.values[0, 3])

    def test_near_empty_cell_absent_from_population_table(self, peak_elevation, sparse_population):
        layers = build_layers(sparse_population, peak_elevation, Config())
        table = to_pixel_table(layers.population)

        assert len(table) == 1
        assert (table["value"] > 0.1).all()

    def test_elevation_nodata_absent_from_terrain_layer(self):
        values = np.tile(np.arange(7, dtype=np.float32) * 100.0, (7, 1))
        values[3, 3] = np.nan
        empty = utm_grid(np.full((7, 7), np.nan))

        layers = build_layers(empty, utm_grid(values), Config())

        assert np.isnan(layers.terrain.values[3, 3])
        assert np.isnan(layers.population.values[3, 3])

    def test_threshold_from_config(self, peak_elevation, sparse_population):
        config = Config()
        config.population.min_density = 0.01

        layers = build_layers(sparse_population, peak_elevation, config)

        assert layers.population_cells == 2


class TestRunPipeline:
    """Stage ordering and outputs with patched data sources."""

    @pytest.fixture
    def sources(self, peak_boundary, peak_elevation, sparse_population):
        with patch("reliefmap.pipeline.load_boundary", return_value=peak_boundary) as boundary, \
             patch("reliefmap.pipeline.load_population", return_value=sparse_population) as population, \
             patch("reliefmap.pipeline.load_elevation", return_value=peak_elevation) as elevation:
            yield {"boundary": boundary, "population": population, "elevation": elevation}

    def test_writes_image(self, sources, config):
        path = run_pipeline(config)

        assert path.exists()
        with Image.open(path) as image:
            assert image.size == (160, 100)

    def test_output_override(self, sources, config, tmp_path):
        path = run_pipeline(config, output_path=tmp_path / "other.png")
        assert path == tmp_path / "other.png"
        assert path.exists()

    def test_loaders_called_with_config(self, sources, config):
        run_pipeline(config)

        sources["boundary"].assert_called_once_with("CHE", 0)
        sources["population"].assert_called_once_with("CHE", 2020)
        args, kwargs = sources["elevation"].call_args
        assert args[1] == 10

    def test_utm_working_crs_from_centroid(self, sources, config):
        run_pipeline(config)

        dst_crs = sources["elevation"].call_args.kwargs["dst_crs"]
        assert dst_crs == CRS.from_epsg(32632)

    def test_configured_working_crs(self, sources, config):
        config.working_crs = "EPSG:32632"
        run_pipeline(config)

        assert sources["elevation"].call_args.kwargs["dst_crs"].to_epsg() == 32632

    def test_download_failure_aborts(self, peak_boundary, config):
        request = httpx.Request("GET", "https://data.example/pop.tif")
        error = httpx.HTTPStatusError("404", request=request, response=httpx.Response(404, request=request))

        with patch("reliefmap.pipeline.load_boundary", return_value=peak_boundary), \
             patch("reliefmap.pipeline.load_population", side_effect=error), \
             patch("reliefmap.pipeline.load_elevation") as elevation:
            with pytest.raises(httpx.HTTPStatusError):
                run_pipeline(config)

        elevation.assert_not_called()
