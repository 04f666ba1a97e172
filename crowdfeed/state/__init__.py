"""Crowd-state model, reconciliation and the observable store."""
from .snapshot import (
    HIGH_DENSITY_COLOR,
    LOW_DENSITY_COLOR,
    HeatZone,
    Location,
    Particle,
    PartialSnapshot,
    RiskLevel,
    Snapshot,
    Status,
)
from .reconciler import merge

__all__ = [
    "HIGH_DENSITY_COLOR",
    "LOW_DENSITY_COLOR",
    "HeatZone",
    "Location",
    "Particle",
    "PartialSnapshot",
    "RiskLevel",
    "Snapshot",
    "Status",
    "merge",
]
