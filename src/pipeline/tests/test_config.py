"""Tests for configuration loading."""

import pytest

from reliefmap.config import Config, get_config, reload_config

ENV_VARS = ["RELIEF_COUNTRY", "RELIEF_ZOOM", "RELIEF_OUTPUT", "RELIEF_DPI", "RELIEF_WORKING_CRS", "HTTP_TIMEOUT"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_switzerland_map(self):
        config = Config()

        assert config.boundary.iso3 == "CHE"
        assert config.population.year == 2020
        assert config.population.min_density == 0.1
        assert config.elevation.zoom == 10
        assert config.terrain.exaggeration == 1.3
        assert config.terrain.azimuth_deg == 225
        assert config.terrain.altitude_deg == 40
        assert config.render.dpi == 600
        assert (config.render.width_in, config.render.height_in) == (8, 5)
        assert config.render.colorbar_ticks == (1, 10, 100, 1000)
        assert config.working_crs is None

    def test_bundled_config_matches_defaults(self):
        config = get_config()
        assert config.boundary.iso3 == "CHE"
        assert config.render.dpi == 600
        assert config.terrain.azimuth_deg == 225


class TestYamlConfig:
    def test_overrides_sections(self, tmp_path):
        (tmp_path / "relief.yaml").write_text(
            "boundary:\n"
            "  iso3: aut\n"
            "terrain:\n"
            "  exaggeration: 2\n"
            "render:\n"
            "  dpi: 150\n"
            "working_crs: EPSG:31287\n"
        )

        config = Config.load(tmp_path)

        assert config.boundary.iso3 == "AUT"
        assert config.terrain.exaggeration == 2.0
        assert config.render.dpi == 150
        assert config.working_crs == "EPSG:31287"
        assert config.elevation.zoom == 10

    def test_empty_file_keeps_defaults(self, tmp_path):
        (tmp_path / "relief.yaml").write_text("")
        assert Config.load(tmp_path).render.dpi == 600

    def test_missing_dir_keeps_defaults(self, tmp_path):
        assert Config.load(tmp_path / "nope").boundary.iso3 == "CHE"


class TestEnvOverrides:
    def test_env_wins_over_yaml(self, tmp_path, monkeypatch):
        (tmp_path / "relief.yaml").write_text("render:\n  dpi: 150\n")
        monkeypatch.setenv("RELIEF_DPI", "72")
        monkeypatch.setenv("RELIEF_COUNTRY", "lie")
        monkeypatch.setenv("RELIEF_ZOOM", "8")
        monkeypatch.setenv("HTTP_TIMEOUT", "5")

        config = Config.load(tmp_path)

        assert config.render.dpi == 72
        assert config.boundary.iso3 == "LIE"
        assert config.elevation.zoom == 8
        assert config.http.timeout == 5.0


class TestGlobalConfig:
    def test_cached(self):
        assert get_config() is get_config()

    def test_reload_replaces_instance(self, tmp_path):
        first = get_config()
        (tmp_path / "relief.yaml").write_text("population:\n  year: 2015\n")

        reloaded = reload_config(tmp_path)

        assert reloaded is not first
        assert get_config() is reloaded
        assert reloaded.population.year == 2015
