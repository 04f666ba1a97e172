"""
Live feed message decoder.

The telemetry endpoint sends JSON objects naming any subset of the three
crowd-state fields:

    {
      "locations":      [{"position": [x, y, z], "label": str, "riskLevel": str}, ...],
      "heatZones":      [{"center": [x, y, z], "radius": float, "intensity": float}, ...],
      "crowdParticles": [{"position": [x, y, z], "color": str, "speed": float}, ...]
    }

Unknown keys are ignored.  Each field is validated on its own: a field
with a bad element is dropped as a whole while its valid siblings are still
applied.  Values are not clamped — what the feed says is what we store.
"""
from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar, Union

from ..errors import MessageDecodeError
from ..state.snapshot import (
    HeatZone,
    Location,
    Particle,
    PartialSnapshot,
    RiskLevel,
    Vec3,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


def _number(value: Any) -> float:
    # bool is an int subclass; "true" is not a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    f = float(value)
    if not math.isfinite(f):
        raise ValueError(f"non-finite number {value!r}")
    return f


def _positive(value: Any) -> float:
    f = _number(value)
    if f <= 0.0:
        raise ValueError(f"expected a positive number, got {f}")
    return f


def _vec3(value: Any) -> Vec3:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ValueError(f"expected 3 coordinates, got {value!r}")
    return (_number(value[0]), _number(value[1]), _number(value[2]))


def _string(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


def _parse_location(item: Dict) -> Location:
    return Location(
        position=_vec3(item["position"]),
        label=_string(item["label"]),
        risk_level=RiskLevel(item["riskLevel"]),
    )


def _parse_heat_zone(item: Dict) -> HeatZone:
    return HeatZone(
        center=_vec3(item["center"]),
        radius=_positive(item["radius"]),
        intensity=_number(item["intensity"]),
    )


def _parse_particle(item: Dict) -> Particle:
    return Particle(
        position=_vec3(item["position"]),
        color=_string(item["color"]),
        speed=_positive(item["speed"]),
    )


def _parse_list(
    data: Dict, key: str, parse_item: Callable[[Dict], T],
) -> Optional[Tuple[T, ...]]:
    """Decode ``data[key]`` into a tuple, or None if absent or invalid."""
    if key not in data or data[key] is None:
        return None
    items = data[key]
    if not isinstance(items, list):
        log.warning("Live message: %s is not a list — field dropped", key)
        return None
    try:
        return tuple(parse_item(item) for item in items)
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        log.warning("Live message: invalid %s entry (%s) — field dropped",
                    key, exc)
        return None


def decode_message(raw: Union[str, bytes]) -> PartialSnapshot:
    """Decode one live feed message into a PartialSnapshot.

    Raises
    ------
    MessageDecodeError
        If *raw* is not JSON or not a JSON object.  Invalid individual
        fields do not raise; they are left out of the result.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as exc:
        raise MessageDecodeError(f"not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MessageDecodeError(
            f"expected a JSON object, got {type(data).__name__}"
        )

    locations = _parse_list(data, "locations", _parse_location)
    if locations is not None:
        labels = [loc.label for loc in locations]
        if len(set(labels)) != len(labels):
            log.warning("Live message: duplicate location labels — field dropped")
            locations = None

    return PartialSnapshot(
        locations=locations,
        heat_zones=_parse_list(data, "heatZones", _parse_heat_zone),
        particles=_parse_list(data, "crowdParticles", _parse_particle),
    )
