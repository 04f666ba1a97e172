"""
Snapshot reconciler — folds a partial update into the current snapshot.

Each provided field replaces the current one wholesale (no per-element
diffing).  Omitted fields are carried over as the very same tuple objects.
Values are taken as given: clamping is the simulator's job, not ours.
"""
from __future__ import annotations

import dataclasses

from .snapshot import PartialSnapshot, Snapshot


def merge(current: Snapshot, partial: PartialSnapshot) -> Snapshot:
    """Return a new Snapshot with *partial* applied over *current*.

    *current* is never modified, so readers of the old value are safe.
    """
    changes = {
        name: getattr(partial, name)
        for name in partial.fields()
    }
    if not changes:
        return current
    return dataclasses.replace(current, **changes)
