"""
Fallback simulator — keeps the crowd picture moving without a live feed.

Two operations:

1. ``seed()`` — builds the one-time baseline snapshot: four sites along
   the Godavari ghats, one heat zone per site, and a random field of crowd
   particles coloured by a simple density rule.
2. ``tick(snapshot)`` — random-walks the current heat zone intensities and
   particle positions.  Called once per interval while no live connection
   is up.

Bounds
──────
  heat zone intensity   [0.05, 1.0]   zones never vanish completely
  particle x / z        [-2.0, 2.0]   the rendered ground is 4 × 4 units

Usage
-----
    sim = FallbackSimulator(seed=42)
    snap = sim.seed()
    partial = sim.tick(snap)     # → PartialSnapshot(heat_zones=..., particles=...)
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from ..state.snapshot import (
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

log = logging.getLogger(__name__)

# (label, position, risk level, zone radius, zone intensity)
_BASELINE_SITES = [
    ("Ramkund",    (-1.0, 0.0, -1.0), RiskLevel.HIGH,     0.30, 0.80),
    ("Triveni",    (1.0, 0.0, -1.0),  RiskLevel.CRITICAL, 0.40, 0.95),
    ("Kalaram",    (0.0, 0.0, 1.0),   RiskLevel.MEDIUM,   0.25, 0.60),
    ("Sita Gufha", (-1.5, 0.0, 0.5),  RiskLevel.LOW,      0.20, 0.30),
]

PARTICLE_COUNT = 200
PARTICLE_HEIGHT = 0.02
GROUND_HALF_EXTENT = 2.0

# Particles closer than this (Manhattan distance) to the origin start out
# tagged as high density
DENSITY_RADIUS = 1.5

INTENSITY_STEP = 0.05
INTENSITY_MIN = 0.05
INTENSITY_MAX = 1.0
POSITION_STEP = 0.01


class FallbackSimulator:
    """Synthetic crowd-state generator.

    Parameters
    ----------
    seed : int, optional
        Seed for the random generator (reproducible runs).
    rng : numpy.random.Generator, optional
        Explicit generator; takes precedence over *seed*.
    particle_count : int
        Size of the seeded particle field (default 200).
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        particle_count: int = PARTICLE_COUNT,
    ):
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._particle_count = particle_count
        self._tick_count = 0

    @property
    def tick_count(self) -> int:
        return self._tick_count

    # ── Seeding ──────────────────────────────────────────────────────

    def seed(self) -> Snapshot:
        """Build the baseline snapshot (status ``simulated``)."""
        locations = tuple(
            Location(position=pos, label=label, risk_level=risk)
            for label, pos, risk, _radius, _intensity in _BASELINE_SITES
        )
        zones = tuple(
            HeatZone(center=pos, radius=radius, intensity=intensity)
            for _label, pos, _risk, radius, intensity in _BASELINE_SITES
        )
        snap = Snapshot(
            locations=locations,
            heat_zones=zones,
            particles=self._seed_particles(),
            status=Status.SIMULATED,
        )
        log.info("Seeded baseline: %s", snap.summary())
        return snap

    def _seed_particles(self) -> Tuple[Particle, ...]:
        n = self._particle_count
        extent = 2.0 * GROUND_HALF_EXTENT
        xs = (self._rng.random(n) - 0.5) * extent
        zs = (self._rng.random(n) - 0.5) * extent
        speeds = self._rng.random(n) * 2.0 + 1.0

        dense = (np.abs(xs) + np.abs(zs)) < DENSITY_RADIUS
        return tuple(
            Particle(
                position=(float(x), PARTICLE_HEIGHT, float(z)),
                color=HIGH_DENSITY_COLOR if d else LOW_DENSITY_COLOR,
                speed=float(s),
            )
            for x, z, s, d in zip(xs, zs, speeds, dense)
        )

    # ── Perturbation ─────────────────────────────────────────────────

    def tick(self, snapshot: Snapshot) -> PartialSnapshot:
        """Random-walk intensities and particle positions one step.

        Fields that are still empty are left out of the result rather than
        being invented here — seeding is a separate step.
        """
        self._tick_count += 1
        zones = self._perturb_zones(snapshot.heat_zones)
        particles = self._perturb_particles(snapshot.particles)
        log.debug(
            "Simulator tick %d: %d zones, %d particles",
            self._tick_count,
            len(zones) if zones else 0,
            len(particles) if particles else 0,
        )
        return PartialSnapshot(heat_zones=zones, particles=particles)

    def _perturb_zones(
        self, zones: Tuple[HeatZone, ...],
    ) -> Optional[Tuple[HeatZone, ...]]:
        if not zones:
            return None
        intensity = np.array([z.intensity for z in zones], dtype=np.float64)
        intensity += self._rng.uniform(-INTENSITY_STEP, INTENSITY_STEP, len(zones))
        intensity = np.clip(intensity, INTENSITY_MIN, INTENSITY_MAX)
        return tuple(
            HeatZone(center=z.center, radius=z.radius, intensity=float(i))
            for z, i in zip(zones, intensity)
        )

    def _perturb_particles(
        self, particles: Tuple[Particle, ...],
    ) -> Optional[Tuple[Particle, ...]]:
        if not particles:
            return None
        n = len(particles)
        pos = np.array([p.position for p in particles], dtype=np.float64)
        # x and z only; y stays on the ground plane
        pos[:, 0] += self._rng.uniform(-POSITION_STEP, POSITION_STEP, n)
        pos[:, 2] += self._rng.uniform(-POSITION_STEP, POSITION_STEP, n)
        pos[:, [0, 2]] = np.clip(
            pos[:, [0, 2]], -GROUND_HALF_EXTENT, GROUND_HALF_EXTENT,
        )
        return tuple(
            Particle(
                position=(float(x), p.position[1], float(z)),
                color=p.color,
                speed=p.speed,
            )
            for p, (x, _y, z) in zip(particles, pos)
        )
