"""
Live telemetry client — WebSocket feed of crowd-state updates.

Holds one persistent connection to the telemetry endpoint.  Every inbound
text frame is decoded into a PartialSnapshot and emitted for the store to
apply.  The client never decides that the system is "simulated"; it only
reports its own connection state and leaves the interpretation to the
store.

Connection states
─────────────────
  disconnected → connecting → live → disconnected
                     │                    ▲
                     └────── failed ──────┘

Threading
─────────
The socket is read on a daemon thread.  Nothing on that thread touches
shared state: every event is marshalled onto the Qt thread the client
lives on with a queued ``invokeMethod`` call, tagged with the attempt id
it belongs to.  Events from an attempt that has since been closed are
dropped on arrival.

Usage
-----
    client = LiveFeedClient(reconnect_interval_s=5.0)
    client.state_changed.connect(on_state)
    client.message_received.connect(store.apply_partial)
    client.connect("ws://localhost:8765/crowd")
    ...
    client.close()
"""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional, Union

from PyQt5 import QtCore
from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from ..errors import MessageDecodeError
from .messages import decode_message

log = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LIVE = "live"


class LiveFeedClient(QtCore.QObject):
    """WebSocket client for the crowd telemetry endpoint.

    Signals
    -------
    state_changed(str)
        New ConnectionState value on every transition.
    message_received(PartialSnapshot)
        One decoded update, in arrival order.
    """

    state_changed = QtCore.pyqtSignal(str)
    message_received = QtCore.pyqtSignal(object)   # PartialSnapshot

    def __init__(
        self,
        reconnect_interval_s: float = 0.0,
        open_timeout_s: float = 10.0,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._reconnect_interval_s = reconnect_interval_s
        self._open_timeout_s = open_timeout_s
        self._state = ConnectionState.DISCONNECTED
        self._url: Optional[str] = None

        # Worker bookkeeping, guarded by _lock
        self._lock = threading.Lock()
        self._attempt = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._socket = None

        self._msg_count = 0
        self._dropped_count = 0

    # ── Properties ───────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def message_count(self) -> int:
        return self._msg_count

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    # ── Control ──────────────────────────────────────────────────────

    def connect(self, endpoint_url: str) -> bool:
        """Open the connection in the background.

        Returns False (and does nothing) if a connection is already open
        or being attempted — there is never more than one.
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                if self._stop_event is not None and self._stop_event.is_set():
                    log.warning("Previous live feed reader still exiting — "
                                "connect() refused")
                else:
                    log.info("Live feed already active (%s) — connect() ignored",
                             self._state.value)
                return False
            self._attempt += 1
            attempt = self._attempt
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._url = endpoint_url
            self._thread = threading.Thread(
                target=self._run,
                args=(endpoint_url, attempt, stop_event),
                daemon=True,
                name=f"live-feed-{attempt}",
            )

        self._set_state(ConnectionState.CONNECTING)
        self._thread.start()
        log.info("Live feed connecting to %s", endpoint_url)
        return True

    def close(self) -> None:
        """Close the connection and stop any reconnect loop.

        Events still queued from the closed attempt are discarded.  A
        reader stuck in its opening handshake keeps running until the
        handshake times out; connect() is refused until it has exited.
        """
        with self._lock:
            self._attempt += 1
            if self._stop_event is not None:
                self._stop_event.set()
            sock = self._socket
            self._socket = None
            thread = self._thread

        if sock is not None:
            try:
                sock.close()
            except Exception as exc:
                log.debug("Live feed socket close error: %s", exc)
        if thread is not None:
            thread.join(timeout=2.0)
            if thread.is_alive():
                log.warning("Live feed reader %s still in handshake after close()",
                            thread.name)
        self._set_state(ConnectionState.DISCONNECTED)

    # ── Message handling (Qt thread) ─────────────────────────────────

    def handle_message(self, raw: Union[str, bytes]) -> None:
        """Decode one frame and emit it; malformed frames are dropped."""
        try:
            partial = decode_message(raw)
        except MessageDecodeError as exc:
            self._dropped_count += 1
            log.warning("Discarding malformed live message: %s", exc)
            return

        self._msg_count += 1
        if partial.is_empty():
            log.debug("Live message carried no usable fields")
            return
        self.message_received.emit(partial)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        log.info("Live feed: %s → %s", previous.value, state.value)
        self.state_changed.emit(state.value)

    @QtCore.pyqtSlot(int, str)
    def _on_worker_state(self, attempt: int, state: str) -> None:
        if attempt != self._attempt:
            return
        self._set_state(ConnectionState(state))

    @QtCore.pyqtSlot(int, object)
    def _on_worker_message(self, attempt: int, raw: object) -> None:
        if attempt != self._attempt:
            log.debug("Dropping message from closed attempt %d", attempt)
            return
        self.handle_message(raw)

    # ── Reader thread ────────────────────────────────────────────────

    def _post_state(self, attempt: int, state: ConnectionState) -> None:
        QtCore.QMetaObject.invokeMethod(
            self, "_on_worker_state",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(int, attempt),
            QtCore.Q_ARG(str, state.value),
        )

    def _post_message(self, attempt: int, raw: Union[str, bytes]) -> None:
        QtCore.QMetaObject.invokeMethod(
            self, "_on_worker_message",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(int, attempt),
            QtCore.Q_ARG(object, raw),
        )

    def _run(self, url: str, attempt: int, stop_event: threading.Event) -> None:
        """Connect / read / reconnect loop (background thread)."""
        first = True
        while not stop_event.is_set():
            if not first:
                self._post_state(attempt, ConnectionState.CONNECTING)
            first = False

            sock = None
            try:
                with ws_connect(url, open_timeout=self._open_timeout_s) as sock:
                    with self._lock:
                        if stop_event.is_set():
                            break
                        self._socket = sock
                    self._post_state(attempt, ConnectionState.LIVE)
                    # Iteration ends quietly on a normal close
                    for raw in sock:
                        self._post_message(attempt, raw)
            except (OSError, TimeoutError, WebSocketException) as exc:
                if not stop_event.is_set():
                    log.warning("Live feed %s error: %s", url, exc)
            except Exception as exc:
                log.error("Live feed reader error on %s: %s", url, exc)
            finally:
                with self._lock:
                    if sock is not None and self._socket is sock:
                        self._socket = None

            self._post_state(attempt, ConnectionState.DISCONNECTED)

            if self._reconnect_interval_s <= 0:
                break
            if stop_event.wait(self._reconnect_interval_s):
                break
            log.info("Live feed reconnecting to %s", url)
