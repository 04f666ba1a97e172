"""
Satellite ground texture compositor.

Builds the ground texture under the crowd scene from slippy-map raster
tiles (ESRI World Imagery by default — free for non-commercial use).  A
square block of ``(2·r + 1)²`` tiles around the centre coordinate is
fetched in parallel and pasted into one Pillow image.

The batch is all-or-nothing: if any tile fails, :func:`compose` raises
:class:`TileFetchError` and no partial image is produced, so the caller
keeps drawing its previous texture.

Tile addressing (Web-Mercator, zoom z, n = 2^z)
────────────────────────────────────────────────
  x = floor((lon + 180) / 360 · n)
  y = floor((1 − ln(tan φ + sec φ) / π) / 2 · n)

Usage
-----
    from crowdfeed.geo.web_tiles import compose, lonlat_to_tile

    lonlat_to_tile(0.0, 0.0, 1)         # → (1, 1)
    img = compose(19.9975, 73.7898, zoom=16, tile_size=256, tiles_radius=1)
    img.save("ground.png")
    img.close()
"""
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from io import BytesIO
from typing import List, Optional, Tuple

import requests
from PIL import Image

from ..errors import TileFetchCancelled, TileFetchError
from ..ingest import fetch_with_retry

log = logging.getLogger(__name__)

DEFAULT_TILE_URL = (
    "https://server.arcgisonline.com/ArcGIS/rest/services/"
    "World_Imagery/MapServer/tile/{z}/{y}/{x}"
)

# Nashik, Ramkund ghat area
DEFAULT_CENTER_LAT = 19.9975
DEFAULT_CENTER_LON = 73.7898
DEFAULT_ZOOM = 16
DEFAULT_TILE_SIZE = 256
DEFAULT_TILES_RADIUS = 1

# How often a waiting compose re-checks its cancel token (seconds)
_CANCEL_POLL_S = 0.1


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> Tuple[int, int]:
    """Return the (x, y) address of the tile containing (lon, lat)."""
    lat_rad = math.radians(lat)
    n = 2 ** zoom
    x = math.floor((lon + 180.0) / 360.0 * n)
    y = math.floor(
        (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi)
        / 2.0 * n
    )
    return x, y


def tile_url(template: str, zoom: int, x: int, y: int) -> str:
    return (
        template
        .replace("{z}", str(zoom))
        .replace("{x}", str(x))
        .replace("{y}", str(y))
    )


def tile_block(
    center_x: int, center_y: int, tiles_radius: int,
) -> List[Tuple[int, int, int, int]]:
    """List ``(dx, dy, x, y)`` for the block around a tile, row-major."""
    return [
        (dx, dy, center_x + dx, center_y + dy)
        for dy in range(-tiles_radius, tiles_radius + 1)
        for dx in range(-tiles_radius, tiles_radius + 1)
    ]


def _fetch_tile(
    url: str,
    session: Optional[requests.Session],
    timeout: float,
    retries: int,
    cancel: Optional[threading.Event],
) -> Image.Image:
    """Download and decode one tile (worker thread)."""
    if cancel is not None and cancel.is_set():
        raise TileFetchCancelled("compose cancelled", url=url)
    try:
        resp = fetch_with_retry(
            url, session=session, timeout=timeout, retries=retries, cancel=cancel,
        )
        img = Image.open(BytesIO(resp.content))
        img.load()
    except (requests.RequestException, OSError) as exc:
        raise TileFetchError(f"tile {url} failed: {exc}", url=url) from exc
    if img.mode == "RGB":
        return img
    rgb = img.convert("RGB")
    img.close()
    return rgb


def compose(
    center_lat: float = DEFAULT_CENTER_LAT,
    center_lon: float = DEFAULT_CENTER_LON,
    zoom: int = DEFAULT_ZOOM,
    tile_size: int = DEFAULT_TILE_SIZE,
    tiles_radius: int = DEFAULT_TILES_RADIUS,
    tile_url_template: str = DEFAULT_TILE_URL,
    *,
    session: Optional[requests.Session] = None,
    cancel: Optional[threading.Event] = None,
    max_workers: int = 9,
    timeout: float = 15.0,
    retries: int = 1,
) -> Image.Image:
    """Fetch the tile block around a coordinate and composite it.

    Parameters
    ----------
    center_lat, center_lon : float
        Centre of the ground texture (WGS84 degrees).
    zoom : int
        Slippy-map zoom level.
    tile_size : int
        Edge length in pixels of one tile in the output image.
    tiles_radius : int
        Block half-width in tiles; 0 fetches a single tile.
    tile_url_template : str
        URL with ``{z}``, ``{x}`` and ``{y}`` placeholders.
    session : requests.Session, optional
        HTTP session to reuse (also the seam tests fake).
    cancel : threading.Event, optional
        Set it to abandon the compose; raises TileFetchCancelled.

    Returns
    -------
    PIL.Image.Image
        RGB image of ``tile_size·(2r+1)`` pixels square.  The caller owns
        it and should ``close()`` it when done.

    Raises
    ------
    TileFetchError
        If any tile in the block fails.  No partial image is returned.
    """
    if tiles_radius < 0:
        raise ValueError(f"tiles_radius must be >= 0, got {tiles_radius}")

    cx, cy = lonlat_to_tile(center_lon, center_lat, zoom)
    block = tile_block(cx, cy, tiles_radius)
    count = 2 * tiles_radius + 1
    log.info(
        "Composing %d tiles around z%d/%d/%d (%.4f, %.4f)",
        len(block), zoom, cx, cy, center_lat, center_lon,
    )

    executor = ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(block))),
        thread_name_prefix="tile-fetch",
    )
    futures: List[Future] = []
    try:
        for _dx, _dy, x, y in block:
            url = tile_url(tile_url_template, zoom, x, y)
            futures.append(
                executor.submit(_fetch_tile, url, session, timeout, retries, cancel)
            )

        pending = set(futures)
        while pending:
            if cancel is not None and cancel.is_set():
                raise TileFetchCancelled("compose cancelled")
            done, pending = wait(
                pending, timeout=_CANCEL_POLL_S, return_when=FIRST_EXCEPTION,
            )
            for fut in done:
                exc = fut.exception()
                if exc is not None:
                    raise exc
        if cancel is not None and cancel.is_set():
            raise TileFetchCancelled("compose cancelled")

        tiles = [fut.result() for fut in futures]
    except TileFetchError:
        _discard(futures)
        raise
    except Exception as exc:
        _discard(futures)
        raise TileFetchError(f"tile batch failed: {exc}") from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    canvas = Image.new("RGB", (tile_size * count, tile_size * count))
    for (dx, dy, _x, _y), tile in zip(block, tiles):
        if tile.size != (tile_size, tile_size):
            resized = tile.resize((tile_size, tile_size))
            tile.close()
            tile = resized
        canvas.paste(
            tile,
            ((dx + tiles_radius) * tile_size, (dy + tiles_radius) * tile_size),
        )
        tile.close()

    log.info("Composited ground texture %dx%d px", *canvas.size)
    return canvas


def _discard(futures: List[Future]) -> None:
    """Cancel pending fetches and close images that already arrived."""
    for fut in futures:
        if fut.cancel():
            continue
        if fut.done() and fut.exception() is None:
            fut.result().close()
