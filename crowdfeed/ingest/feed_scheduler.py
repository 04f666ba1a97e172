"""
Crowd feed scheduler — decides who drives the store.

Runs on the Qt event loop.  Both producers of crowd-state updates live on
that loop, so their writes into the store never interleave:

  QTimer tick (every 1 s, only while not live)
    → FallbackSimulator.tick(current snapshot)
    → store.apply_partial()

  LiveFeedClient (socket thread → queued slot)
    → message_received(PartialSnapshot)
    → store.apply_partial()

  LiveFeedClient.state_changed
    → live:          store.on_live_connected()   → simulator goes inert
    → disconnected:  store.on_live_lost()        → simulator resumes

No endpoint configured is a normal setup: the store simply stays in
simulated mode.

Usage
-----
    store = CrowdStateStore()
    scheduler = CrowdFeedScheduler(store, endpoint_url=os.environ.get(...))
    scheduler.start()
    ...
    scheduler.stop()     # stops the timer and closes the connection
"""
from __future__ import annotations

import logging
from typing import Optional

from PyQt5 import QtCore

from ..state.snapshot import Status
from ..state.store import CrowdStateStore
from .live_feed import ConnectionState, LiveFeedClient
from .simulator import FallbackSimulator

log = logging.getLogger(__name__)


class CrowdFeedScheduler(QtCore.QObject):
    """Owns the simulator timer and the live connection for one store.

    Signals
    -------
    status_message(str)
        Informational messages for a status bar or console.
    """

    status_message = QtCore.pyqtSignal(str)

    def __init__(
        self,
        store: CrowdStateStore,
        simulator: Optional[FallbackSimulator] = None,
        endpoint_url: Optional[str] = None,
        tick_interval_ms: int = 1000,
        reconnect_interval_s: float = 0.0,
        client: Optional[LiveFeedClient] = None,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._store = store
        self._simulator = simulator or FallbackSimulator()
        self._endpoint_url = endpoint_url or None
        self._client = client or LiveFeedClient(
            reconnect_interval_s=reconnect_interval_s, parent=self,
        )

        self._tick_timer = QtCore.QTimer(self)
        self._tick_timer.setInterval(int(tick_interval_ms))
        self._tick_timer.timeout.connect(self.tick)

        self._running = False

    # ── Properties ───────────────────────────────────────────────────

    @property
    def store(self) -> CrowdStateStore:
        return self._store

    @property
    def client(self) -> LiveFeedClient:
        return self._client

    @property
    def simulator(self) -> FallbackSimulator:
        return self._simulator

    @property
    def simulating(self) -> bool:
        """True while the fallback timer is driving the store."""
        return self._tick_timer.isActive()

    # ── Control ──────────────────────────────────────────────────────

    def start(self) -> None:
        if self._running:
            return
        self._running = True

        if self._store.status is Status.UNINITIALIZED:
            self._store.seed(self._simulator.seed())

        self._client.message_received.connect(self._store.apply_partial)
        self._client.state_changed.connect(self._on_client_state)
        self._store.status_changed.connect(self._on_store_status)

        if self._endpoint_url:
            self._client.connect(self._endpoint_url)
            self.status_message.emit(f"Connecting to {self._endpoint_url}")
        else:
            log.info("No live endpoint configured — running simulated")
            self.status_message.emit("Simulated mode (no live endpoint)")

        self._sync_timer()
        log.info(
            "CrowdFeedScheduler started (tick %d ms, endpoint %s)",
            self._tick_timer.interval(), self._endpoint_url or "none",
        )

    def stop(self) -> None:
        """Stop the timer and close the connection.  Safe to call twice."""
        if not self._running:
            return
        self._running = False
        self._tick_timer.stop()

        self._client.message_received.disconnect(self._store.apply_partial)
        self._client.state_changed.disconnect(self._on_client_state)
        self._client.close()
        self._store.on_live_lost()
        self._store.status_changed.disconnect(self._on_store_status)
        log.info("CrowdFeedScheduler stopped")

    # ── Simulation ───────────────────────────────────────────────────

    def tick(self) -> None:
        """Run one simulator step, unless the live feed is authoritative."""
        if self._store.status is Status.LIVE:
            return
        partial = self._simulator.tick(self._store.get_snapshot())
        self._store.apply_partial(partial)

    def _sync_timer(self) -> None:
        should_run = self._running and self._store.status is not Status.LIVE
        if should_run and not self._tick_timer.isActive():
            self._tick_timer.start()
            log.debug("Fallback simulator resumed")
        elif not should_run and self._tick_timer.isActive():
            self._tick_timer.stop()
            log.debug("Fallback simulator paused")

    # ── Slots ────────────────────────────────────────────────────────

    def _on_client_state(self, state: str) -> None:
        if state == ConnectionState.LIVE.value:
            self._store.on_live_connected()
            self.status_message.emit(f"Live feed: {self._endpoint_url}")
        elif state == ConnectionState.DISCONNECTED.value:
            if self._store.on_live_lost():
                self.status_message.emit("Live feed lost — simulating")

    def _on_store_status(self, _status: str) -> None:
        self._sync_timer()
