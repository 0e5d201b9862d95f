"""
Decompression schedule generation and dive planning.

The ascent walks a 3 m stop grid from the bottom to the surface. At each
depth the diver holds in 1-minute steps until every compartment is within
its gradient-factor-adjusted M-value at the next shallower depth, then
ascends at the configured rate. The gradient factor is interpolated between
gf_low at the first stop and gf_high at the surface.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .buhlmann_constants import AIR_N2_FRACTION, SURFACE_PRESSURE, GradientFactors
from .ceiling import (
    N2_A,
    N2_B,
    adjusted_m_value,
    can_ascend_to,
    first_stop_depth,
    interpolated_gf,
)
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import DecoScheduleError, InvariantViolation
from .gases import FRACTION_TOLERANCE, Gas, select_deco_gas
from .ndl import calculate_ndl
from .pressure import ambient_pressure
from .profile_generator import ProfileGenerator, Waypoint
from .tissue import TissueState, simulate_constant_depth, simulate_depth_change

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecoStop:
    depth: float  # m
    time: int  # minutes held, 0 for a gas switch without a hold
    gas_id: str


@dataclass(frozen=True)
class DecoSchedule:
    """Ascent plan from the end of the bottom phase."""
    stops: Tuple[DecoStop, ...]
    total_stop_time: int
    first_stop_depth: float
    controlling_compartment: Optional[int]
    ascent_time: float  # minutes of transit from max depth to the surface
    final_tissue: TissueState
    first_stop_ambient: float = SURFACE_PRESSURE  # bar, unrounded gf_low ceiling

    @property
    def tts(self) -> float:
        """Time to surface: stop time plus ascent transit."""
        return self.total_stop_time + self.ascent_time

    @property
    def requires_deco(self) -> bool:
        return bool(self.stops)


@dataclass(frozen=True)
class DivePlan:
    waypoints: Tuple[Waypoint, ...]
    ndl: float
    requires_deco: bool
    schedule: Optional[DecoSchedule]
    controlling_compartment: Optional[int]


def next_stop_depth(depth: float, increment: float) -> float:
    """Largest multiple of `increment` strictly shallower than `depth`."""
    return max(0.0, float(math.ceil(depth / increment - 1) * increment))


def _check_stop_limits(
    state: TissueState, depth: float, gf: float, config: EngineConfig
) -> None:
    ambient = ambient_pressure(depth, config.surface_pressure, config.meters_per_bar)
    limits = adjusted_m_value(ambient, N2_A, N2_B, gf)
    over = np.nonzero(state.pressures > limits)[0]
    if over.size:
        raise InvariantViolation(
            f"Leaving stop for {depth}m with gf={gf:.3f} exceeds the M-value "
            f"of compartments {[int(i) + 1 for i in over]}"
        )


def generate_deco_schedule(
    tissue: TissueState,
    max_depth: float,
    n2_fraction: float = AIR_N2_FRACTION,
    gf_low: float = 1.0,
    gf_high: float = 1.0,
    gases: Optional[Sequence[Gas]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> DecoSchedule:
    """
    Generate the ascent stop schedule from a loaded tissue state.

    Args:
        tissue: Tissue state at the end of the bottom phase
        max_depth: Depth the ascent starts from (m)
        n2_fraction: N2 fraction breathed at the start of the ascent; when
                     gases are given the first gas wins and a mismatch is
                     logged as a warning
        gf_low: Gradient factor at the first stop (fraction)
        gf_high: Gradient factor at the surface (fraction)
        gases: Gas table, bottom gas first; deco gases are switched to
               when their MOD at deco_max_ppo2 covers the stop depth

    Returns:
        DecoSchedule. Stops lists every depth held for at least a minute or
        where a gas switch happens; it is empty when no stop needs time.

    Raises:
        DecoScheduleError: a stop did not clear within max_stop_time
    """
    GradientFactors(gf_low, gf_high)  # raises ValueError on invalid factors
    gases = list(gases or [])
    current = gases[0] if gases else Gas.from_n2("bottom", n2_fraction)
    if abs(current.n2 - n2_fraction) > FRACTION_TOLERANCE:
        logger.warning(
            f"n2_fraction {n2_fraction} differs from bottom gas {current.id} "
            f"({current.n2}), using the gas"
        )
    breathing_n2 = current.n2

    first = first_stop_depth(tissue, gf_low, config)
    # GF slope starts at the unrounded ceiling; surface pressure when there is none
    anchor = first.ambient
    logger.debug(
        f"First stop {first.depth}m (ceiling {first.ambient:.3f} bar, "
        f"TC{first.controlling_compartment})"
    )

    state = tissue
    current_depth = float(max_depth)
    stops: List[DecoStop] = []

    for _ in range(config.max_iterations):
        if current_depth <= 0:
            break
        target = next_stop_depth(current_depth, config.stop_increment)

        gas = select_deco_gas(current_depth, current, gases, config.deco_max_ppo2, config)
        switched = gas.id != current.id
        if switched:
            logger.debug(f"Switching {current.id} -> {gas.id} at {current_depth}m")
            current = gas
            breathing_n2 = gas.n2

        gf = interpolated_gf(target, gf_low, gf_high, anchor, config)
        minutes = 0
        while not can_ascend_to(state, target, gf, config):
            if minutes >= config.max_stop_time:
                logger.error(
                    f"Stop at {current_depth}m not cleared after {minutes} min (gf={gf:.3f})"
                )
                raise DecoScheduleError(
                    f"Stop at {current_depth}m exceeded {config.max_stop_time} min"
                )
            state = simulate_constant_depth(state, current_depth, 1.0, breathing_n2, config)
            minutes += 1

        if minutes > 0 or switched:
            stops.append(DecoStop(current_depth, minutes, current.id))
            logger.debug(f"Stop {current_depth}m: {minutes} min on {current.id}")

        if __debug__:
            _check_stop_limits(state, target, gf, config)

        duration = (current_depth - target) / config.ascent_rate
        state = simulate_depth_change(state, current_depth, target, duration, breathing_n2, config)
        current_depth = target
    else:
        raise DecoScheduleError(
            f"Ascent from {max_depth}m did not reach the surface in {config.max_iterations} steps"
        )

    if not any(stop.time > 0 for stop in stops):
        stops = []

    total = sum(stop.time for stop in stops)
    return DecoSchedule(
        stops=tuple(stops),
        total_stop_time=total,
        first_stop_depth=first.depth,
        controlling_compartment=first.controlling_compartment,
        ascent_time=max_depth / config.ascent_rate,
        final_tissue=state,
        first_stop_ambient=anchor,
    )


def plan_dive(
    max_depth: float,
    bottom_time: float,
    gases: Optional[Sequence[Gas]] = None,
    gf_low_percent: float = 100,
    gf_high_percent: float = 100,
    config: EngineConfig = DEFAULT_CONFIG,
    initial_tissue: Optional[TissueState] = None,
) -> DivePlan:
    """
    Plan a square dive: NDL check, then a deco schedule when needed.

    Args:
        max_depth: Bottom depth (m)
        bottom_time: Minutes from the start of the dive until leaving the bottom
        gases: Gas table, bottom gas first (air if None)
        gf_low_percent: GF Low in percent (0, 100]
        gf_high_percent: GF High in percent (0, 100]
        initial_tissue: Tissue carried over from a previous dive

    Returns:
        DivePlan whose waypoints can be fed back to evaluate()
    """
    gf = GradientFactors.from_percent(gf_low_percent, gf_high_percent)
    gases = list(gases) if gases else [Gas.air()]
    bottom = gases[0]
    generator = ProfileGenerator(config.descent_rate, config.ascent_rate)
    generator.validate_bottom_time(max_depth, bottom_time)

    ndl = calculate_ndl(max_depth, bottom.n2, gf.gf_high, initial_tissue, config)
    if bottom_time <= ndl.ndl:
        waypoints = generator.generate_square(max_depth, bottom_time, bottom.id)
        return DivePlan(tuple(waypoints), ndl.ndl, False, None, ndl.controlling_compartment)

    state = initial_tissue if initial_tissue is not None else TissueState.surface(bottom.n2, config)
    descent_time = generator.descent_time(max_depth)
    state = simulate_depth_change(state, 0.0, max_depth, descent_time, bottom.n2, config)
    state = simulate_constant_depth(
        state, max_depth, bottom_time - descent_time, bottom.n2, config
    )

    schedule = generate_deco_schedule(
        state, max_depth, bottom.n2, gf.gf_low, gf.gf_high, gases, config
    )
    waypoints = generator.schedule_to_waypoints(max_depth, bottom_time, schedule, bottom.id)
    logger.info(
        f"Planned {max_depth}m / {bottom_time} min: NDL {ndl.ndl}, "
        f"{len(schedule.stops)} stops, TTS {schedule.tts:.1f} min"
    )
    return DivePlan(
        tuple(waypoints),
        ndl.ndl,
        schedule.requires_deco,
        schedule,
        schedule.controlling_compartment or ndl.controlling_compartment,
    )
