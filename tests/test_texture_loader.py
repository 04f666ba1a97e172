"""Tests for the generation-guarded ground texture loader."""

import threading

from crowdfeed.errors import TileFetchCancelled, TileFetchError
from crowdfeed.geo.texture_loader import GroundTextureLoader


class FakeTexture:
    def __init__(self, name):
        self.name = name
        self.closed = False

    def close(self):
        self.closed = True


class ScriptedCompose:
    """compose() stand-in: each call pops the next scripted behaviour."""

    def __init__(self, *script):
        self._script = list(script)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, **kwargs):
        with self._lock:
            self.calls.append(kwargs)
            step = self._script.pop(0)
        return step(kwargs)


def returns(texture, gate=None):
    def _step(_kwargs):
        if gate is not None:
            gate.wait(5)
        return texture
    return _step


def raises(exc, gate=None):
    def _step(_kwargs):
        if gate is not None:
            gate.wait(5)
        raise exc
    return _step


class TestGroundTextureLoader:

    def test_texture_delivered(self, qtbot):
        tex = FakeTexture("a")
        loader = GroundTextureLoader(compose_fn=ScriptedCompose(returns(tex)))
        with qtbot.waitSignal(loader.texture_ready, timeout=3000) as blocker:
            gen = loader.request(zoom=15, tiles_radius=0)
        assert gen == 1
        assert blocker.args == [tex]
        assert loader.texture is tex

    def test_parameters_passed_through(self, qtbot):
        compose = ScriptedCompose(returns(FakeTexture("a")))
        loader = GroundTextureLoader(
            tile_url_template="http://t/{z}/{x}/{y}", compose_fn=compose,
        )
        with qtbot.waitSignal(loader.texture_ready, timeout=3000):
            loader.request(center_lat=1.0, center_lon=2.0, zoom=12,
                           tile_size=128, tiles_radius=2)
        call = compose.calls[0]
        assert call["center_lat"] == 1.0 and call["center_lon"] == 2.0
        assert call["zoom"] == 12 and call["tile_size"] == 128
        assert call["tiles_radius"] == 2
        assert call["tile_url_template"] == "http://t/{z}/{x}/{y}"
        assert isinstance(call["cancel"], threading.Event)

    def test_stale_result_discarded(self, qtbot):
        gate = threading.Event()
        stale, fresh = FakeTexture("stale"), FakeTexture("fresh")
        compose = ScriptedCompose(returns(stale, gate), returns(fresh))
        loader = GroundTextureLoader(compose_fn=compose)
        ready = []
        loader.texture_ready.connect(ready.append)

        loader.request(zoom=15)
        qtbot.waitUntil(lambda: len(compose.calls) == 1, timeout=3000)
        first_cancel = compose.calls[0]["cancel"]
        loader.request(zoom=16)
        assert first_cancel.is_set()

        qtbot.waitUntil(lambda: ready == [fresh], timeout=3000)
        gate.set()
        qtbot.waitUntil(lambda: stale.closed, timeout=3000)
        assert ready == [fresh]
        assert loader.texture is fresh
        assert not fresh.closed

    def test_new_request_releases_previous_texture(self, qtbot):
        first, second = FakeTexture("1"), FakeTexture("2")
        loader = GroundTextureLoader(
            compose_fn=ScriptedCompose(returns(first), returns(second)),
        )
        with qtbot.waitSignal(loader.texture_ready, timeout=3000):
            loader.request()
        with qtbot.waitSignal(loader.texture_released, timeout=1000):
            loader.request(zoom=17)
        assert first.closed
        qtbot.waitUntil(lambda: loader.texture is second, timeout=3000)

    def test_failure_reported(self, qtbot):
        loader = GroundTextureLoader(
            compose_fn=ScriptedCompose(raises(TileFetchError("tile 3/4/5 failed"))),
        )
        released = []
        loader.texture_released.connect(lambda: released.append(True))
        with qtbot.waitSignal(loader.texture_failed, timeout=3000) as blocker:
            loader.request()
        assert "3/4/5" in blocker.args[0]
        assert loader.texture is None
        assert released == []

    def test_superseded_failure_ignored(self, qtbot):
        gate = threading.Event()
        fresh = FakeTexture("fresh")
        compose = ScriptedCompose(
            raises(TileFetchError("tile 9/9/9 failed"), gate), returns(fresh),
        )
        loader = GroundTextureLoader(compose_fn=compose)
        failed, ready = [], []
        loader.texture_failed.connect(failed.append)
        loader.texture_ready.connect(ready.append)

        loader.request(zoom=15)
        qtbot.waitUntil(lambda: len(compose.calls) == 1, timeout=3000)
        loader.request(zoom=16)
        qtbot.waitUntil(lambda: ready == [fresh], timeout=3000)

        gate.set()
        qtbot.wait(200)
        assert failed == []
        assert loader.texture is fresh
        assert not fresh.closed

    def test_cancelled_compose_is_silent(self, qtbot):
        compose = ScriptedCompose(raises(TileFetchCancelled("cancelled")))
        loader = GroundTextureLoader(compose_fn=compose)
        events = []
        loader.texture_ready.connect(events.append)
        loader.texture_failed.connect(events.append)
        loader.request()
        qtbot.waitUntil(lambda: len(compose.calls) == 1, timeout=3000)
        qtbot.wait(100)
        assert events == []

    def test_dispose_cancels_and_releases(self, qtbot):
        gate = threading.Event()
        late = FakeTexture("late")
        first = FakeTexture("first")
        compose = ScriptedCompose(returns(first), returns(late, gate))
        loader = GroundTextureLoader(compose_fn=compose)
        with qtbot.waitSignal(loader.texture_ready, timeout=3000):
            loader.request()

        loader.request(zoom=18)
        qtbot.waitUntil(lambda: len(compose.calls) == 2, timeout=3000)
        loader.dispose()
        assert first.closed
        assert compose.calls[1]["cancel"].is_set()

        gate.set()
        qtbot.waitUntil(lambda: late.closed, timeout=3000)
        assert loader.texture is None
