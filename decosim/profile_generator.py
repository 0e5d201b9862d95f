"""
Waypoint handling and dive profile generation.

- Waypoint validation (errors raised, warnings logged)
- Segment rates and dive statistics
- Merging several dives into one timeline
- Square (no-deco with safety stop), multi-level and deco-schedule profiles
"""

import logging
import math
import numbers
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .errors import ProfileValidationError

logger = logging.getLogger(__name__)

RECREATIONAL_DEPTH_LIMIT = 60.0  # meters, deeper waypoints only warn


@dataclass(frozen=True)
class Waypoint:
    """A point of a dive profile. Time in minutes, depth in meters."""
    time: float
    depth: float
    gas_id: Optional[str] = None


@dataclass(frozen=True)
class SegmentRate:
    """Vertical speed between two consecutive waypoints."""
    from_index: int
    to_index: int
    rate: float  # m/min, always positive
    kind: str  # 'descent', 'ascent' or 'level'


@dataclass(frozen=True)
class DiveStats:
    max_depth: float
    total_time: float
    max_descent_rate: float
    max_ascent_rate: float
    waypoint_count: int


def validate_waypoints(
    waypoints: Sequence[Waypoint],
    require_surface_start: bool = False,
) -> List[str]:
    """Validate a waypoint list.

    Raises ProfileValidationError listing every error found. Returns the list
    of warnings (also logged), which never make a profile invalid.
    """
    errors = []
    warnings = []

    if len(waypoints) < 2:
        errors.append("Profile must have at least 2 waypoints")

    if require_surface_start and waypoints:
        if waypoints[0].time != 0:
            errors.append("First waypoint must be at time 0")
        if waypoints[0].depth != 0:
            errors.append("First waypoint should be at surface (0m)")

    for i, wp in enumerate(waypoints):
        n = i + 1
        if not _is_number(wp.time):
            errors.append(f"Waypoint {n}: Invalid time value")
            continue
        if not _is_number(wp.depth):
            errors.append(f"Waypoint {n}: Invalid depth value")
            continue
        if wp.time < 0:
            errors.append(f"Waypoint {n}: Time cannot be negative")
        if wp.depth < 0:
            errors.append(f"Waypoint {n}: Depth cannot be negative")
        if i > 0 and _is_number(waypoints[i - 1].time) and wp.time <= waypoints[i - 1].time:
            errors.append(f"Waypoint {n}: Time must be greater than previous waypoint")
        if wp.depth > RECREATIONAL_DEPTH_LIMIT:
            warnings.append(
                f"Waypoint {n} depth ({wp.depth}m) exceeds recreational limits"
            )

    if waypoints and _is_number(waypoints[-1].depth) and waypoints[-1].depth != 0:
        warnings.append("Dive should end at surface (0m)")

    if errors:
        raise ProfileValidationError(errors)

    for warning in warnings:
        logger.warning(warning)
    return warnings


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def calculate_rates(waypoints: Sequence[Waypoint]) -> List[SegmentRate]:
    """Descent/ascent/level speed of every segment with positive duration."""
    rates = []
    for i in range(len(waypoints) - 1):
        wp1, wp2 = waypoints[i], waypoints[i + 1]
        time_diff = wp2.time - wp1.time
        depth_diff = wp2.depth - wp1.depth
        if time_diff <= 0:
            continue
        if depth_diff > 0:
            kind = "descent"
        elif depth_diff < 0:
            kind = "ascent"
        else:
            kind = "level"
        rates.append(SegmentRate(i, i + 1, abs(depth_diff / time_diff), kind))
    return rates


def dive_stats(waypoints: Sequence[Waypoint]) -> Optional[DiveStats]:
    """Summary statistics of a profile, None for fewer than 2 waypoints."""
    if len(waypoints) < 2:
        return None
    rates = calculate_rates(waypoints)
    return DiveStats(
        max_depth=max(wp.depth for wp in waypoints),
        total_time=waypoints[-1].time,
        max_descent_rate=max((r.rate for r in rates if r.kind == "descent"), default=0.0),
        max_ascent_rate=max((r.rate for r in rates if r.kind == "ascent"), default=0.0),
        waypoint_count=len(waypoints),
    )


def merge_dives(
    dives: Sequence[Tuple[Sequence[Waypoint], float]],
) -> List[Waypoint]:
    """Concatenate dives into one timeline.

    Args:
        dives: (waypoints, surface_interval_before) pairs. Each dive's times
               start at 0; the interval before the first dive is ignored.
    """
    merged = []
    offset = 0.0
    for index, (waypoints, surface_interval) in enumerate(dives):
        if index > 0 and surface_interval:
            offset += surface_interval
        for wp in waypoints:
            merged.append(Waypoint(wp.time + offset, wp.depth, wp.gas_id))
        if waypoints:
            offset += waypoints[-1].time
    return merged


class ProfileGenerator:
    """Generate waypoint lists for planned dives."""

    def __init__(
        self,
        descent_rate: float = 20.0,  # m/min
        ascent_rate: float = 10.0,  # m/min
        safety_stop_depth: float = 5.0,  # m
        safety_stop_time: float = 3.0,  # min
    ):
        self.descent_rate = descent_rate
        self.ascent_rate = ascent_rate
        self.safety_stop_depth = safety_stop_depth
        self.safety_stop_time = safety_stop_time

    def descent_time(self, depth: float) -> float:
        return depth / self.descent_rate

    def validate_bottom_time(self, depth: float, bottom_time: float) -> None:
        if depth <= 0:
            raise ProfileValidationError([f"Bottom depth must be > 0, got {depth}"])
        if bottom_time <= self.descent_time(depth):
            raise ProfileValidationError([
                f"Bottom time ({bottom_time} min) must exceed descent time "
                f"({self.descent_time(depth):.2f} min)"
            ])

    def generate_square(
        self, depth: float, bottom_time: float, gas_id: Optional[str] = None
    ) -> List[Waypoint]:
        """
        Generate a no-deco square profile with a safety stop.

        Bottom time is measured from the start of the dive: the ascent begins
        at minute `bottom_time`.

        Args:
            depth: Maximum depth in meters
            bottom_time: Time from dive start until leaving the bottom (minutes)
            gas_id: Gas tagged on the arrival at depth
        """
        self.validate_bottom_time(depth, bottom_time)
        waypoints = [
            Waypoint(0.0, 0.0),
            Waypoint(self.descent_time(depth), depth, gas_id),
            Waypoint(bottom_time, depth),
        ]
        time = bottom_time
        if depth > self.safety_stop_depth:
            time += (depth - self.safety_stop_depth) / self.ascent_rate
            waypoints.append(Waypoint(time, self.safety_stop_depth))
            time += self.safety_stop_time
            waypoints.append(Waypoint(time, self.safety_stop_depth))
            time += self.safety_stop_depth / self.ascent_rate
        else:
            time += depth / self.ascent_rate
        waypoints.append(Waypoint(time, 0.0))
        return waypoints

    def generate_multilevel(
        self, levels: Sequence[Tuple[float, float]], gas_id: Optional[str] = None
    ) -> List[Waypoint]:
        """
        Generate a multi-level profile.

        Args:
            levels: (depth_m, duration_min) pairs, visited in order
            gas_id: Gas tagged on the first waypoint
        """
        if not levels:
            raise ValueError("At least one level is required")
        waypoints = [Waypoint(0.0, 0.0, gas_id)]
        time = 0.0
        current_depth = 0.0
        for depth, duration in levels:
            delta = depth - current_depth
            rate = self.descent_rate if delta > 0 else self.ascent_rate
            if delta != 0:
                time += abs(delta) / rate
                waypoints.append(Waypoint(time, depth))
            if duration > 0:
                time += duration
                waypoints.append(Waypoint(time, depth))
            current_depth = depth
        if current_depth > 0:
            time += current_depth / self.ascent_rate
            waypoints.append(Waypoint(time, 0.0))
        return waypoints

    def schedule_to_waypoints(
        self,
        depth: float,
        bottom_time: float,
        schedule,
        bottom_gas_id: Optional[str] = None,
    ) -> List[Waypoint]:
        """Turn a decompression schedule back into a waypoint list.

        Ascent between stops uses exact times at `ascent_rate`. A stop with
        zero duration (a gas switch on the way up) yields only its arrival.
        """
        self.validate_bottom_time(depth, bottom_time)
        waypoints = [
            Waypoint(0.0, 0.0),
            Waypoint(self.descent_time(depth), depth, bottom_gas_id),
            Waypoint(bottom_time, depth),
        ]
        time = bottom_time
        current_depth = depth
        for stop in schedule.stops:
            if stop.depth == current_depth:
                # Stop held at the current depth: tag the gas on the last waypoint
                waypoints[-1] = replace(waypoints[-1], gas_id=stop.gas_id)
            else:
                time += (current_depth - stop.depth) / self.ascent_rate
                waypoints.append(Waypoint(time, stop.depth, stop.gas_id))
            if stop.time > 0:
                time += stop.time
                waypoints.append(Waypoint(time, stop.depth))
            current_depth = stop.depth
        if current_depth > 0:
            time += current_depth / self.ascent_rate
            waypoints.append(Waypoint(time, 0.0))
        return waypoints
