"""
Headless crowd feed monitor.

Runs the crowd feed on a Qt event loop without a window: seeds the store,
follows the live endpoint when one is configured, falls back to the
simulator otherwise, and logs status changes plus a periodic snapshot
summary.  Optionally writes the composited satellite ground texture to a
PNG file.

    python -m crowdfeed.app.main --ws-url ws://localhost:8765/crowd
    python -m crowdfeed.app.main --ground-png ground.png --duration 30
"""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from PyQt5 import QtCore

from ..config import FeedConfig
from ..errors import ConfigError
from ..geo.texture_loader import GroundTextureLoader
from ..ingest.feed_scheduler import CrowdFeedScheduler
from ..ingest.simulator import FallbackSimulator
from ..logger import setup_logging
from ..state.store import CrowdStateStore

log = logging.getLogger(__name__)

_CLI_RECONNECT_S = 5.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crowd feed monitor — live crowd state with simulated fallback",
    )
    parser.add_argument(
        "--ws-url",
        default=None,
        help="Live telemetry WebSocket URL (default: $CROWDFEED_SIM_WS_URL; "
             "none → simulated mode).",
    )
    parser.add_argument(
        "--tile-url",
        default=None,
        help="Tile URL template with {z}, {x}, {y} placeholders.",
    )
    parser.add_argument(
        "--tick-ms",
        type=int,
        default=None,
        help="Fallback simulator interval in milliseconds (default 1000).",
    )
    parser.add_argument(
        "--reconnect",
        type=float,
        default=None,
        help="Seconds between live reconnect attempts, 0 disables "
             "(default: $CROWDFEED_RECONNECT_S, else 5).",
    )
    parser.add_argument(
        "--summary",
        type=float,
        default=5.0,
        help="Seconds between snapshot summary log lines (default 5).",
    )
    parser.add_argument(
        "--ground-png",
        default=None,
        help="Compose the satellite ground texture and save it to this PNG.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the fallback simulator.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=0.0,
        help="Exit after this many seconds (default: run until Ctrl+C).",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )
    return parser


def load_config(args: argparse.Namespace) -> FeedConfig:
    cfg = FeedConfig.from_env()
    if args.ws_url is not None:
        cfg.endpoint_url = args.ws_url or None
    if args.tile_url is not None:
        cfg.tile_url_template = args.tile_url
    if args.tick_ms is not None:
        cfg.tick_interval_ms = args.tick_ms
    if args.reconnect is not None:
        cfg.reconnect_interval_s = args.reconnect
    elif "CROWDFEED_RECONNECT_S" not in os.environ:
        cfg.reconnect_interval_s = _CLI_RECONNECT_S
    cfg.validate()
    return cfg


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=getattr(logging, args.log_level))

    try:
        cfg = load_config(args)
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)
        return 2

    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication(sys.argv[:1])

    store = CrowdStateStore()
    scheduler = CrowdFeedScheduler(
        store,
        simulator=FallbackSimulator(seed=args.seed),
        endpoint_url=cfg.endpoint_url,
        tick_interval_ms=cfg.tick_interval_ms,
        reconnect_interval_s=cfg.reconnect_interval_s,
    )
    scheduler.status_message.connect(lambda msg: log.info("%s", msg))
    store.status_changed.connect(lambda status: log.info("Status: %s", status))

    summary_timer = QtCore.QTimer()
    summary_timer.setInterval(int(args.summary * 1000))
    summary_timer.timeout.connect(lambda: log.info("%s", store.get_snapshot().summary()))

    loader: Optional[GroundTextureLoader] = None
    if args.ground_png:
        loader = GroundTextureLoader(tile_url_template=cfg.tile_url_template)

        def _save_texture(img) -> None:
            img.save(args.ground_png, "PNG")
            log.info("Ground texture saved to %s", args.ground_png)

        loader.texture_ready.connect(_save_texture)
        loader.texture_failed.connect(
            lambda err: log.warning("Ground texture unavailable: %s", err)
        )
        loader.request(
            center_lat=cfg.center_lat,
            center_lon=cfg.center_lon,
            zoom=cfg.zoom,
            tile_size=cfg.tile_size,
            tiles_radius=cfg.tiles_radius,
        )

    def _shutdown(*_args) -> None:
        log.info("Shutting down...")
        app.quit()

    # Qt's event loop blocks Python signal delivery; a no-op timer lets
    # the handler run periodically.
    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    sig_timer = QtCore.QTimer()
    sig_timer.timeout.connect(lambda: None)
    sig_timer.start(200)

    if args.duration > 0:
        QtCore.QTimer.singleShot(int(args.duration * 1000), app.quit)

    scheduler.start()
    if args.summary > 0:
        summary_timer.start()

    try:
        code = app.exec_()
    finally:
        summary_timer.stop()
        sig_timer.stop()
        scheduler.stop()
        if loader is not None:
            loader.dispose()
        store.dispose()
    log.info("Crowd feed monitor stopped.")
    return code


if __name__ == "__main__":
    sys.exit(main())
