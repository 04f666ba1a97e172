"""Tests for environment configuration."""

import pytest

from crowdfeed.config import FeedConfig
from crowdfeed.errors import ConfigError
from crowdfeed.geo.web_tiles import DEFAULT_TILE_URL


class TestFeedConfig:

    def test_defaults_without_environment(self):
        cfg = FeedConfig.from_env({})
        assert cfg.endpoint_url is None
        assert cfg.tile_url_template == DEFAULT_TILE_URL
        assert cfg.tick_interval_ms == 1000
        assert cfg.reconnect_interval_s == 0.0
        assert cfg.zoom == 16

    def test_values_from_environment(self):
        cfg = FeedConfig.from_env({
            "CROWDFEED_SIM_WS_URL": "ws://feed.test/crowd",
            "CROWDFEED_SATELLITE_TILE_URL": "http://t/{z}/{x}/{y}.png",
            "CROWDFEED_TICK_MS": "250",
            "CROWDFEED_RECONNECT_S": "2.5",
            "CROWDFEED_CENTER_LAT": "10.5",
            "CROWDFEED_CENTER_LON": "-20.25",
            "CROWDFEED_ZOOM": "12",
        })
        assert cfg.endpoint_url == "ws://feed.test/crowd"
        assert cfg.tile_url_template == "http://t/{z}/{x}/{y}.png"
        assert cfg.tick_interval_ms == 250
        assert cfg.reconnect_interval_s == 2.5
        assert (cfg.center_lat, cfg.center_lon) == (10.5, -20.25)
        assert cfg.zoom == 12

    def test_empty_endpoint_means_simulated(self):
        assert FeedConfig.from_env({"CROWDFEED_SIM_WS_URL": ""}).endpoint_url is None

    def test_bad_number(self):
        with pytest.raises(ConfigError, match="CROWDFEED_TICK_MS"):
            FeedConfig.from_env({"CROWDFEED_TICK_MS": "fast"})

    def test_template_needs_all_placeholders(self):
        with pytest.raises(ConfigError, match="{y}"):
            FeedConfig.from_env({"CROWDFEED_SATELLITE_TILE_URL": "http://t/{z}/{x}"})

    @pytest.mark.parametrize("field, value", [
        ("tick_interval_ms", 0),
        ("reconnect_interval_s", -1.0),
        ("center_lat", 89.0),
        ("zoom", 30),
        ("tiles_radius", -1),
    ])
    def test_validate_rejects(self, field, value):
        cfg = FeedConfig()
        setattr(cfg, field, value)
        with pytest.raises(ConfigError):
            cfg.validate()
