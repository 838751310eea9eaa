from __future__ import annotations
from dataclasses import dataclass
from math import asin, cos, floor, radians, sin, sqrt
from typing import Iterable, Protocol, Sequence

"""
Geospatial helpers for proximity tracking.

We keep a tiny geometry layer here so the monitor can do distance/speed/ETA math
without pulling in heavier GIS dependencies. Everything here is pure: degenerate
inputs (zero distance, zero speed, short history) map to defined sentinel values
instead of raising.
"""

EARTH_RADIUS_M = 6_371_000.0

# Mean speeds above this (~180 km/h) are treated as GPS jumps, not movement.
MAX_PLAUSIBLE_SPEED_MPS = 50.0


class HasLatLng(Protocol):
    lat: float
    lng: float


class TimedFix(HasLatLng, Protocol):
    captured_at_ms: int


@dataclass(frozen=True)
class DistanceResult:
    meters: float

    @property
    def kilometers(self) -> float:
        return self.meters / 1000.0


@dataclass(frozen=True)
class SpeedEstimate:
    meters_per_second: float

    @property
    def kmh(self) -> float:
        return self.meters_per_second * 3.6


def haversine_m(a: HasLatLng, b: HasLatLng) -> float:
    """Compute great-circle distance in meters between two points."""
    lat1 = radians(a.lat)
    lon1 = radians(a.lng)
    lat2 = radians(b.lat)
    lon2 = radians(b.lng)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Clamp: rounding can push h a hair above 1 for near-antipodal points.
    return 2 * EARTH_RADIUS_M * asin(sqrt(min(1.0, h)))


def distance(a: HasLatLng, b: HasLatLng) -> DistanceResult:
    """Great-circle distance between two coordinates (symmetric, 0 for equal points)."""
    if a.lat == b.lat and a.lng == b.lng:
        return DistanceResult(meters=0.0)
    return DistanceResult(meters=haversine_m(a, b))


def speed(history: Iterable[TimedFix]) -> SpeedEstimate:
    """Average speed over consecutive pairs of a position history.

    Pairs with a non-positive time delta are skipped. Fewer than two samples, no
    usable pair, or an implausible mean (GPS jump) all yield 0.
    """
    samples: Sequence[TimedFix] = list(history)
    if len(samples) < 2:
        return SpeedEstimate(meters_per_second=0.0)

    speeds: list[float] = []
    for prev, cur in zip(samples, samples[1:]):
        dt_s = (cur.captured_at_ms - prev.captured_at_ms) / 1000.0
        if dt_s <= 0:
            continue
        speeds.append(distance(prev, cur).meters / dt_s)

    if not speeds:
        return SpeedEstimate(meters_per_second=0.0)

    mean = sum(speeds) / len(speeds)
    if mean > MAX_PLAUSIBLE_SPEED_MPS:
        return SpeedEstimate(meters_per_second=0.0)
    return SpeedEstimate(meters_per_second=mean)


def eta(distance_m: float, speed_mps: float) -> float:
    """ETA in minutes; 0 means unknown (no speed) or no distance left."""
    if speed_mps == 0 or distance_m == 0:
        return 0.0
    return distance_m / speed_mps / 60.0


def should_notify(distance_m: float, speed_mps: float, notify_before_minutes: float) -> bool:
    """True when the projected ETA falls within (0, notify_before_minutes]."""
    if speed_mps <= 0 or distance_m <= 0:
        return False
    minutes = eta(distance_m, speed_mps)
    return 0 < minutes <= notify_before_minutes


def has_arrived(distance_m: float, radius_m: float) -> bool:
    """Containment check; the boundary counts as arrived."""
    return distance_m <= radius_m


def _round_half_up(value: float) -> int:
    # Builtin round() is half-to-even; display values round .5 up.
    return floor(value + 0.5)


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{_round_half_up(meters)}m"
    return f"{meters / 1000:.1f}km"


def format_eta(minutes: float) -> str:
    if minutes < 1:
        return "< 1 min"
    if minutes < 60:
        return f"{_round_half_up(minutes)} min"
    hours, mins = divmod(_round_half_up(minutes), 60)
    return f"{hours}h {mins}m"
