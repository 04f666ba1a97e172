"""
Crowd-state store — the single owner of the live Snapshot.

The store holds the current Snapshot and the connectivity status, and
publishes every new value to its subscribers.  The live feed client and
the fallback simulator are its only writers; both funnel through
:meth:`CrowdStateStore.apply_partial`, which computes the merged value and
swaps it in atomically.

Status machine
──────────────
  uninitialized ──seed()──▶ simulated ⇄ live
                                 ▲        │
                                 └────────┘ on_live_lost()

There is no edge from ``uninitialized`` to ``live``: a connection that
comes up before the store is seeded is refused.

Usage
-----
    store = CrowdStateStore()
    unsubscribe = store.subscribe(lambda snap: print(snap.summary()))
    store.seed()
    store.apply_partial(PartialSnapshot(heat_zones=(...)))
    unsubscribe()
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Callable, List, Optional

from PyQt5 import QtCore

from .reconciler import merge
from .snapshot import PartialSnapshot, Snapshot, Status

log = logging.getLogger(__name__)

Listener = Callable[[Snapshot], None]


class CrowdStateStore(QtCore.QObject):
    """Observable crowd-state store.

    Signals
    -------
    snapshot_changed(Snapshot)
        Emitted with every newly published snapshot.
    status_changed(str)
        Emitted with the new status value on each transition.
    """

    snapshot_changed = QtCore.pyqtSignal(object)   # Snapshot
    status_changed = QtCore.pyqtSignal(str)

    _TRANSITIONS = {
        (Status.UNINITIALIZED, Status.SIMULATED),
        (Status.SIMULATED, Status.LIVE),
        (Status.LIVE, Status.SIMULATED),
    }

    def __init__(self, parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self._snapshot = Snapshot()
        self._listeners: List[Listener] = []
        self._write_lock = threading.Lock()
        self._disposed = False

    # ── Read side ─────────────────────────────────────────────────────

    @property
    def status(self) -> Status:
        return self._snapshot.status

    def get_snapshot(self) -> Snapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    # ── Status transitions ───────────────────────────────────────────

    def seed(self, baseline: Optional[Snapshot] = None) -> bool:
        """Populate the baseline snapshot and enter simulated mode.

        Without *baseline*, a default FallbackSimulator produces it.
        Returns False if the store was already seeded.
        """
        if self.status is not Status.UNINITIALIZED:
            log.warning("Store already seeded (%s) — ignoring seed()",
                        self.status.value)
            return False
        if baseline is None:
            from ..ingest.simulator import FallbackSimulator
            baseline = FallbackSimulator().seed()

        self._commit(
            lambda _cur: dataclasses.replace(baseline, status=Status.SIMULATED)
        )
        snap = self._snapshot
        log.info("Store seeded: %s", snap.summary())
        return True

    def on_live_connected(self) -> bool:
        if self.status is Status.LIVE:
            return True
        return self._transition(Status.LIVE)

    def on_live_lost(self) -> bool:
        if self.status is not Status.LIVE:
            return False
        return self._transition(Status.SIMULATED)

    def _transition(self, target: Status) -> bool:
        current = self.status
        if (current, target) not in self._TRANSITIONS:
            log.warning("Refusing status transition %s → %s",
                        current.value, target.value)
            return False
        self._commit(lambda cur: dataclasses.replace(cur, status=target))
        log.info("Store status: %s → %s", current.value, target.value)
        return True

    # ── Write side ───────────────────────────────────────────────────

    def apply_partial(self, partial: PartialSnapshot) -> None:
        """Merge *partial* into the current snapshot and publish it.

        Applied whatever the current status is — a late message from a
        connection that has just dropped still lands (last write wins).
        """
        if partial.is_empty():
            return
        self._commit(lambda cur: merge(cur, partial))
        log.debug("Applied partial update: %s", ", ".join(partial.fields()))

    def _commit(self, update: Callable[[Snapshot], Snapshot]) -> None:
        with self._write_lock:
            if self._disposed:
                return
            old = self._snapshot
            new = update(old)
            if new is old:
                return
            self._snapshot = new

        # Notify outside the lock so a listener may write back
        self._publish(new)
        if new.status is not old.status:
            self.status_changed.emit(new.status.value)

    def _publish(self, snapshot: Snapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                log.error("Snapshot listener %r failed: %s", listener, exc)
        self.snapshot_changed.emit(snapshot)

    # ── Lifecycle ────────────────────────────────────────────────────

    def dispose(self) -> None:
        """Drop all subscribers; later writes are ignored."""
        with self._write_lock:
            self._disposed = True
        self._listeners.clear()
        log.info("Store disposed")

    @property
    def disposed(self) -> bool:
        return self._disposed
