"""
Breathing gases: validation, catalogue, MOD/END and gas selection along a profile.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from .buhlmann_constants import AIR_N2_FRACTION, METERS_PER_BAR, SURFACE_PRESSURE
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import GasError

logger = logging.getLogger(__name__)

FRACTION_TOLERANCE = 1e-6

# Minutes held at a gas switch depth
GAS_SWITCH_TIME = 3.0


@dataclass(frozen=True)
class Gas:
    """A breathing gas. Fractions must sum to 1 within FRACTION_TOLERANCE."""
    id: str
    o2: float
    n2: float
    he: float = 0.0
    name: str = ""

    def __post_init__(self):
        for label, value in (("o2", self.o2), ("n2", self.n2), ("he", self.he)):
            if not (0.0 <= value <= 1.0):
                raise GasError(f"Gas {self.id!r}: {label} fraction must be in [0, 1], got {value}")
        total = self.o2 + self.n2 + self.he
        if abs(total - 1.0) > FRACTION_TOLERANCE:
            raise GasError(
                f"Gas {self.id!r}: fractions must sum to 1, got {total:.6f}"
            )

    @classmethod
    def air(cls, gas_id: str = "air") -> "Gas":
        return cls(id=gas_id, o2=1.0 - AIR_N2_FRACTION, n2=AIR_N2_FRACTION, name="Air")

    @classmethod
    def from_n2(cls, gas_id: str, n2: float, he: float = 0.0) -> "Gas":
        """Build a gas from its N2 (and He) fraction; O2 makes up the rest."""
        return cls(id=gas_id, o2=1.0 - n2 - he, n2=n2, he=he)

    def mod(self, max_ppo2: float = 1.4, config: EngineConfig = DEFAULT_CONFIG) -> float:
        return calculate_mod(self.o2, max_ppo2, config.surface_pressure, config.meters_per_bar)


BOTTOM_GASES: List[Gas] = [
    Gas("air", 0.21, 0.79, 0.0, "Air"),
    Gas("ean32", 0.32, 0.68, 0.0, "Nitrox 32 (EAN32)"),
    Gas("ean36", 0.36, 0.64, 0.0, "Nitrox 36 (EAN36)"),
    Gas("tx21_35", 0.21, 0.44, 0.35, "Trimix 21/35"),
    Gas("tx18_45", 0.18, 0.37, 0.45, "Trimix 18/45"),
    Gas("tx10_70", 0.10, 0.20, 0.70, "Trimix 10/70"),
]

DECO_GASES: List[Gas] = [
    Gas("ean50", 0.50, 0.50, 0.0, "Nitrox 50 (EAN50)"),
    Gas("ean80", 0.80, 0.20, 0.0, "Nitrox 80 (EAN80)"),
    Gas("o2", 1.0, 0.0, 0.0, "Pure Oxygen (100%)"),
]

PREDEFINED_GASES: List[Gas] = BOTTOM_GASES + DECO_GASES


def get_predefined_gas(gas_id: str) -> Optional[Gas]:
    """Find a catalogue gas by id, None if unknown."""
    return next((g for g in PREDEFINED_GASES if g.id == gas_id), None)


def calculate_mod(
    o2_fraction: float,
    max_ppo2: float = 1.4,
    surface_pressure: float = SURFACE_PRESSURE,
    meters_per_bar: float = METERS_PER_BAR,
) -> float:
    """Maximum operating depth (whole meters, rounded down) for an O2 fraction."""
    if o2_fraction <= 0:
        return math.inf
    max_ambient = max_ppo2 / o2_fraction
    # Tolerance absorbs representation error, e.g. 1.6 / 0.32
    return math.floor((max_ambient - surface_pressure) * meters_per_bar + 1e-9)


def calculate_end(depth: float, he_fraction: float = 0.0) -> int:
    """Equivalent narcotic depth (m), treating O2 and N2 as narcotic."""
    narcotic_fraction = 1.0 - he_fraction
    return math.floor((depth + METERS_PER_BAR) * narcotic_fraction - METERS_PER_BAR + 0.5)


def find_gas(gases: Sequence[Gas], gas_id: str) -> Optional[Gas]:
    return next((g for g in gases if g.id == gas_id), None)


def gas_at_waypoint(waypoint, gases: Sequence[Gas]) -> Gas:
    """Gas tagged on the waypoint, falling back to the first (bottom) gas."""
    if not gases:
        return Gas.air()
    if waypoint.gas_id:
        gas = find_gas(gases, waypoint.gas_id)
        if gas is not None:
            return gas
    return gases[0]


def active_gases(waypoints: Sequence, gases: Sequence[Gas]) -> List[Gas]:
    """Gas breathed from each waypoint onwards.

    The gas tagged on the most recent waypoint with an explicit gas_id stays
    active until another waypoint names a different one. Before any tag the
    first gas is used.
    """
    current = gases[0] if gases else Gas.air()
    result = []
    for wp in waypoints:
        if wp.gas_id:
            current = gas_at_waypoint(wp, gases)
        result.append(current)
    return result


def gas_at_time(waypoints: Sequence, gases: Sequence[Gas], time: float) -> Gas:
    """Active gas at a time in the dive."""
    if not waypoints:
        return gases[0] if gases else Gas.air()
    active = active_gases(waypoints, gases)
    current = active[0]
    for wp, gas in zip(waypoints, active):
        if wp.time > time:
            break
        current = gas
    return current


@dataclass(frozen=True)
class GasSwitch:
    """A change of breathing gas at a waypoint."""
    time: float
    depth: float
    from_gas: Gas
    to_gas: Gas


def gas_switch_events(waypoints: Sequence, gases: Sequence[Gas]) -> List[GasSwitch]:
    """All changes of active gas along a waypoint list."""
    if len(waypoints) < 2 or len(gases) < 2:
        return []
    active = active_gases(waypoints, gases)
    switches = []
    for i in range(1, len(waypoints)):
        if active[i].id != active[i - 1].id:
            switches.append(
                GasSwitch(waypoints[i].time, waypoints[i].depth, active[i - 1], active[i])
            )
    return switches


def select_deco_gas(
    depth: float,
    current: Gas,
    gases: Sequence[Gas],
    max_ppo2: float = 1.6,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Gas:
    """Best gas to breathe at `depth` on ascent.

    The richest gas (by O2 fraction) whose MOD covers the depth. Only gases
    richer than the current one qualify, so a gas superseded by an earlier,
    deeper switch is never selected again.
    """
    best = current
    for gas in gases:
        if gas.o2 > best.o2 and gas.mod(max_ppo2, config) >= depth:
            best = gas
    return best


def insert_gas_switch_waypoints(
    waypoints: Sequence,
    gases: Sequence[Gas],
    ascent_rate: float = 10.0,
    max_ppo2: float = 1.6,
    switch_time: float = GAS_SWITCH_TIME,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list:
    """Insert gas switch waypoints on the ascent where deco gases become usable.

    Each deco gas (every gas after the first) switches at its MOD rounded down
    to the stop grid. A switch stop of `switch_time` minutes is inserted and
    later waypoints are shifted, unless the profile already holds a stop at
    that depth, in which case the switch merges into it. The waypoint after an
    inserted stop is delayed if needed so the ascent never exceeds `ascent_rate`.
    Every returned waypoint carries an explicit gas_id.
    """
    if len(waypoints) < 2 or len(gases) < 2:
        return list(waypoints)

    increment = config.stop_increment
    deco_gases = sorted(
        (
            (gas, calculate_mod(gas.o2, max_ppo2, config.surface_pressure, config.meters_per_bar))
            for gas in gases[1:]
        ),
        key=lambda item: item[1],
        reverse=True,
    )
    bottom_gas = gases[0]

    max_depth = 0.0
    max_depth_time = 0.0
    for wp in waypoints:
        if wp.depth > max_depth:
            max_depth = wp.depth
            max_depth_time = wp.time

    ascent_start = next(
        (
            i for i, wp in enumerate(waypoints)
            if i > 0 and wp.time > max_depth_time and wp.depth < max_depth
        ),
        None,
    )
    if ascent_start is None:
        return list(waypoints)

    # A stop is two consecutive waypoints at the same non-zero depth
    stop_depths = {
        wp.depth for wp, nxt in zip(waypoints, waypoints[1:])
        if wp.depth == nxt.depth and wp.depth > 0
    }

    result = []
    used = set()
    offset = 0.0
    current_id = bottom_gas.id

    for i, wp in enumerate(waypoints):
        inserted = False
        hold_after = False
        if result and result[-1].depth > wp.depth:
            for gas, mod in deco_gases:
                if gas.id in used or not math.isfinite(mod):
                    continue
                prev = result[-1]
                switch_depth = math.floor(mod / increment) * increment
                if not (prev.depth > switch_depth >= wp.depth):
                    continue
                used.add(gas.id)
                current_id = gas.id
                has_stop = switch_depth in stop_depths
                if wp.depth == switch_depth:
                    # The waypoint itself arrives at the switch depth
                    hold_after = not has_stop
                    continue
                arrival = math.ceil(prev.time + (prev.depth - switch_depth) / ascent_rate)
                result.append(replace(wp, time=arrival, depth=switch_depth, gas_id=gas.id))
                if not has_stop:
                    result.append(
                        replace(wp, time=arrival + switch_time, depth=switch_depth, gas_id=gas.id)
                    )
                    offset += switch_time
                inserted = True
                logger.debug(f"Gas switch to {gas.id} at {switch_depth}m (t={arrival})")

        time = wp.time + offset
        if inserted:
            # Leave the inserted stop no faster than the ascent rate
            last = result[-1]
            earliest = last.time + (last.depth - wp.depth) / ascent_rate
            if time < earliest:
                offset += earliest - time
                time = earliest

        gas_id = bottom_gas.id if i < ascent_start else current_id
        result.append(replace(wp, time=time, gas_id=gas_id))
        if hold_after:
            result.append(replace(wp, time=time + switch_time, gas_id=gas_id))
            offset += switch_time

    return sorted(result, key=lambda w: w.time)
