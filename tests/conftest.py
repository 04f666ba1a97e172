import os
import threading
from io import BytesIO

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
import requests
from PIL import Image

from crowdfeed.ingest.simulator import FallbackSimulator


@pytest.fixture(autouse=True)
def _qt_app(qapp):
    """Every test runs with a Qt application instance alive."""
    yield qapp


@pytest.fixture
def simulator():
    return FallbackSimulator(seed=1234)


@pytest.fixture
def baseline(simulator):
    return simulator.seed()


class FakeResponse:
    def __init__(self, url, status_code=200, content=b""):
        self.url = url
        self.status_code = status_code
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeTileSession:
    """Stands in for requests.Session; serves solid-colour PNG tiles.

    Each tile is coloured (x, y, z) from its URL ``.../{z}/{x}/{y}.png`` so
    tests can check where it landed in the composite.
    """

    def __init__(self, tile_px=8, fail=None, status=404, raise_exc=None, mode="RGB"):
        self.tile_px = tile_px
        self.mode = mode
        self.fail = set(fail or ())
        self.status = status
        self.raise_exc = raise_exc
        self.requested = []
        self._lock = threading.Lock()

    def get(self, url, params=None, timeout=None):
        with self._lock:
            self.requested.append(url)
        if url in self.fail:
            if self.raise_exc is not None:
                raise self.raise_exc
            return FakeResponse(url, status_code=self.status)
        z, x, y = (int(p) for p in url.rsplit(".", 1)[0].split("/")[-3:])
        color = (x % 256, y % 256, z % 256) + ((255,) if self.mode == "RGBA" else ())
        img = Image.new(self.mode, (self.tile_px, self.tile_px), color)
        buf = BytesIO()
        img.save(buf, "PNG")
        return FakeResponse(url, content=buf.getvalue())


@pytest.fixture
def tile_session():
    return FakeTileSession
