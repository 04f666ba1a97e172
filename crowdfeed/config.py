"""
Runtime configuration.

Values come from environment variables and can be overridden on the
command line (see ``crowdfeed.app.main``).  A missing live endpoint is a
normal configuration: the feed runs in simulated mode.

  CROWDFEED_SIM_WS_URL            live telemetry WebSocket URL
  CROWDFEED_SATELLITE_TILE_URL    tile URL template with {z} {x} {y}
  CROWDFEED_TICK_MS               simulator interval (default 1000)
  CROWDFEED_RECONNECT_S           live reconnect delay, 0 = off
  CROWDFEED_CENTER_LAT / _LON     ground texture centre
  CROWDFEED_ZOOM                  ground texture zoom level
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError
from .geo.web_tiles import (
    DEFAULT_CENTER_LAT,
    DEFAULT_CENTER_LON,
    DEFAULT_TILE_SIZE,
    DEFAULT_TILE_URL,
    DEFAULT_TILES_RADIUS,
    DEFAULT_ZOOM,
)

_PLACEHOLDERS = ("{z}", "{x}", "{y}")


@dataclass
class FeedConfig:
    endpoint_url: Optional[str] = None
    tile_url_template: str = DEFAULT_TILE_URL
    tick_interval_ms: int = 1000
    reconnect_interval_s: float = 0.0
    center_lat: float = DEFAULT_CENTER_LAT
    center_lon: float = DEFAULT_CENTER_LON
    zoom: int = DEFAULT_ZOOM
    tile_size: int = DEFAULT_TILE_SIZE
    tiles_radius: int = DEFAULT_TILES_RADIUS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FeedConfig":
        env = os.environ if environ is None else environ
        cfg = cls(
            endpoint_url=env.get("CROWDFEED_SIM_WS_URL") or None,
            tile_url_template=env.get("CROWDFEED_SATELLITE_TILE_URL") or DEFAULT_TILE_URL,
            tick_interval_ms=_parse(env, "CROWDFEED_TICK_MS", int, 1000),
            reconnect_interval_s=_parse(env, "CROWDFEED_RECONNECT_S", float, 0.0),
            center_lat=_parse(env, "CROWDFEED_CENTER_LAT", float, DEFAULT_CENTER_LAT),
            center_lon=_parse(env, "CROWDFEED_CENTER_LON", float, DEFAULT_CENTER_LON),
            zoom=_parse(env, "CROWDFEED_ZOOM", int, DEFAULT_ZOOM),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Raise ConfigError on values the feed cannot run with."""
        missing = [p for p in _PLACEHOLDERS if p not in self.tile_url_template]
        if missing:
            raise ConfigError(
                f"tile URL template lacks {', '.join(missing)}: "
                f"{self.tile_url_template}"
            )
        if self.tick_interval_ms <= 0:
            raise ConfigError(f"tick interval must be positive, got {self.tick_interval_ms}")
        if self.reconnect_interval_s < 0:
            raise ConfigError(
                f"reconnect interval must be >= 0, got {self.reconnect_interval_s}"
            )
        if not -85.0511 <= self.center_lat <= 85.0511:
            raise ConfigError(f"latitude outside Web-Mercator range: {self.center_lat}")
        if not 0 <= self.zoom <= 22:
            raise ConfigError(f"zoom must be 0-22, got {self.zoom}")
        if self.tile_size <= 0 or self.tiles_radius < 0:
            raise ConfigError("tile size must be positive and tile radius >= 0")


def _parse(env: Mapping[str, str], key: str, kind: type, default):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{key}={raw!r} is not a valid {kind.__name__}") from exc
