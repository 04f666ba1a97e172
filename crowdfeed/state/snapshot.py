"""
Crowd-state data model.

A Snapshot is the complete crowd picture at one moment: named locations
with an advisory risk level, circular heat zones, and a field of crowd
flow particles.  Snapshots are immutable values — every update produces a
new Snapshot, so a reader holding an old one never sees it change.

Example
-------
    snap = Snapshot(
        locations=(Location((-1.0, 0.0, -1.0), "Ramkund", RiskLevel.HIGH),),
        heat_zones=(HeatZone((-1.0, 0.0, -1.0), 0.3, 0.8),),
    )
    snap.status                      # Status.UNINITIALIZED
    snap.as_dict()["heatZones"]      # wire-format dicts
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

Vec3 = Tuple[float, float, float]

# Particle colour tags, fixed when the particle is created
HIGH_DENSITY_COLOR = "#ef4444"
LOW_DENSITY_COLOR = "#10b981"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Status(str, Enum):
    """Connectivity status of the store.

    ``UNINITIALIZED`` only exists before the first seed.
    """
    UNINITIALIZED = "uninitialized"
    SIMULATED = "simulated"
    LIVE = "live"


@dataclass(frozen=True)
class Location:
    """A named point of interest (temple, ghat, gate...)."""
    position: Vec3
    label: str
    risk_level: RiskLevel = RiskLevel.LOW

    def as_dict(self) -> Dict:
        return {
            "position": list(self.position),
            "label": self.label,
            "riskLevel": self.risk_level.value,
        }


@dataclass(frozen=True)
class HeatZone:
    """Circular crowd-density field.  Overlapping zones are not merged."""
    center: Vec3
    radius: float
    intensity: float

    def as_dict(self) -> Dict:
        return {
            "center": list(self.center),
            "radius": self.radius,
            "intensity": self.intensity,
        }


@dataclass(frozen=True)
class Particle:
    """One crowd-flow sample."""
    position: Vec3
    color: str
    speed: float        # oscillation rate used by the renderer

    def as_dict(self) -> Dict:
        return {
            "position": list(self.position),
            "color": self.color,
            "speed": self.speed,
        }


@dataclass(frozen=True)
class Snapshot:
    """Complete crowd state.  Fields are never None."""
    locations: Tuple[Location, ...] = ()
    heat_zones: Tuple[HeatZone, ...] = ()
    particles: Tuple[Particle, ...] = ()
    status: Status = Status.UNINITIALIZED

    def as_dict(self) -> Dict:
        """Serialize using the live feed's field names (for logs / JSON)."""
        return {
            "locations": [loc.as_dict() for loc in self.locations],
            "heatZones": [z.as_dict() for z in self.heat_zones],
            "crowdParticles": [p.as_dict() for p in self.particles],
            "status": self.status.value,
        }

    def summary(self) -> str:
        peak = max((z.intensity for z in self.heat_zones), default=0.0)
        return (
            f"{self.status.value}: {len(self.locations)} locations, "
            f"{len(self.heat_zones)} zones (peak {peak:.2f}), "
            f"{len(self.particles)} particles"
        )


@dataclass(frozen=True)
class PartialSnapshot:
    """An update naming only the fields it changes.

    ``None`` means "not provided"; an empty tuple is a real value that
    clears the field.
    """
    locations: Optional[Tuple[Location, ...]] = None
    heat_zones: Optional[Tuple[HeatZone, ...]] = None
    particles: Optional[Tuple[Particle, ...]] = None

    def is_empty(self) -> bool:
        return (
            self.locations is None
            and self.heat_zones is None
            and self.particles is None
        )

    def fields(self) -> Tuple[str, ...]:
        """Names of the fields this update provides."""
        return tuple(
            name for name in ("locations", "heat_zones", "particles")
            if getattr(self, name) is not None
        )
