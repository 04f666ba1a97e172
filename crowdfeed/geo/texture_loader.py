"""
Ground texture loader — owns the composited satellite texture.

Runs :func:`web_tiles.compose` on a worker thread and hands the result to
the Qt thread.  Each request is stamped with a generation number; when the
parameters change mid-download the older request is cancelled, and if its
result still arrives it is closed and dropped instead of being applied over
the newer texture.

Lifecycle
─────────
  request(params)   release current texture → start compose (gen N)
  compose done      gen == N ? texture_ready : close + discard
  compose failed    gen == N ? texture_failed : ignore
  dispose()         cancel in-flight compose, release texture
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import requests
from PIL import Image
from PyQt5 import QtCore

from ..errors import TileFetchCancelled, TileFetchError
from .web_tiles import (
    DEFAULT_CENTER_LAT,
    DEFAULT_CENTER_LON,
    DEFAULT_TILE_SIZE,
    DEFAULT_TILE_URL,
    DEFAULT_TILES_RADIUS,
    DEFAULT_ZOOM,
    compose,
)

log = logging.getLogger(__name__)


class GroundTextureLoader(QtCore.QObject):
    """Background compositor with stale-result protection.

    Signals
    -------
    texture_ready(PIL.Image.Image)
        A fresh texture.  The loader keeps ownership; consumers copy it.
    texture_released()
        The previous texture was closed (parameters changed / disposed).
    texture_failed(str)
        The latest request failed; nothing was released.
    """

    texture_ready = QtCore.pyqtSignal(object)
    texture_released = QtCore.pyqtSignal()
    texture_failed = QtCore.pyqtSignal(str)

    def __init__(
        self,
        tile_url_template: str = DEFAULT_TILE_URL,
        session: Optional[requests.Session] = None,
        compose_fn: Callable[..., Image.Image] = compose,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._template = tile_url_template
        self._session = session
        self._compose = compose_fn
        self._generation = 0
        self._cancel: Optional[threading.Event] = None
        self._texture: Optional[Image.Image] = None
        self._disposed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def texture(self) -> Optional[Image.Image]:
        return self._texture

    def request(
        self,
        center_lat: float = DEFAULT_CENTER_LAT,
        center_lon: float = DEFAULT_CENTER_LON,
        zoom: int = DEFAULT_ZOOM,
        tile_size: int = DEFAULT_TILE_SIZE,
        tiles_radius: int = DEFAULT_TILES_RADIUS,
    ) -> int:
        """Start composing a texture for new parameters.

        Returns the generation number of this request.
        """
        if self._disposed:
            raise RuntimeError("GroundTextureLoader has been disposed")

        self._cancel_inflight()
        self._release()
        self._generation += 1
        generation = self._generation
        cancel = threading.Event()
        self._cancel = cancel

        params = dict(
            center_lat=center_lat,
            center_lon=center_lon,
            zoom=zoom,
            tile_size=tile_size,
            tiles_radius=tiles_radius,
            tile_url_template=self._template,
        )
        threading.Thread(
            target=self._worker,
            args=(generation, params, cancel),
            daemon=True,
            name=f"ground-texture-{generation}",
        ).start()
        return generation

    def dispose(self) -> None:
        """Cancel any compose in flight and release the texture."""
        if self._disposed:
            return
        self._disposed = True
        self._cancel_inflight()
        self._generation += 1
        self._release()

    # ── Internals ────────────────────────────────────────────────────

    def _cancel_inflight(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None

    def _release(self) -> None:
        if self._texture is not None:
            self._texture.close()
            self._texture = None
            self.texture_released.emit()

    def _worker(self, generation: int, params: dict, cancel: threading.Event) -> None:
        """Compose one texture (background thread)."""
        try:
            img = self._compose(session=self._session, cancel=cancel, **params)
        except TileFetchCancelled:
            log.debug("Ground texture generation %d cancelled", generation)
            return
        except (TileFetchError, ValueError) as exc:
            log.warning("Ground texture generation %d failed: %s", generation, exc)
            QtCore.QMetaObject.invokeMethod(
                self, "_on_compose_failed",
                QtCore.Qt.QueuedConnection,
                QtCore.Q_ARG(int, generation),
                QtCore.Q_ARG(str, str(exc)),
            )
            return

        QtCore.QMetaObject.invokeMethod(
            self, "_on_compose_done",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(int, generation),
            QtCore.Q_ARG(object, img),
        )

    def _is_stale(self, generation: int) -> bool:
        return self._disposed or generation != self._generation

    @QtCore.pyqtSlot(int, object)
    def _on_compose_done(self, generation: int, img: object) -> None:
        if self._is_stale(generation):
            log.debug("Discarding stale ground texture (gen %d, latest %d)",
                      generation, self._generation)
            img.close()
            return
        self._cancel = None
        self._texture = img
        self.texture_ready.emit(img)

    @QtCore.pyqtSlot(int, str)
    def _on_compose_failed(self, generation: int, error: str) -> None:
        if self._is_stale(generation):
            return
        self._cancel = None
        self.texture_failed.emit(error)
