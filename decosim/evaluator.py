"""
Profile evaluation: walk a waypoint list and record tissue loading.

Each segment between consecutive waypoints is integrated in closed form:
Schreiner when the depth changes, Haldane when it is constant. One sample is
recorded per waypoint; callers wanting finer resolution supply finer waypoints.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .buhlmann_constants import NUM_COMPARTMENTS
from .ceiling import ceiling_depth
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import ProfileValidationError
from .gases import Gas, GasSwitch, active_gases, find_gas, gas_switch_events
from .pressure import alveolar_n2_pressure, ambient_pressure
from .profile_generator import Waypoint, validate_waypoints
from .tissue import TissueState, simulate_constant_depth, simulate_depth_change

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ProfileResult:
    """Time series produced by one evaluation. Immutable."""

    time_points: Tuple[float, ...]
    depth_points: Tuple[float, ...]
    ambient_pressures: Tuple[float, ...]
    n2_fractions: Tuple[float, ...]
    alveolar_n2_pressures: Tuple[float, ...]
    gas_ids: Tuple[str, ...]

    # Tissue N2 tension: [sample_idx][compartment_idx], read-only
    compartment_pressures: np.ndarray

    gas_switches: Tuple[GasSwitch, ...]
    config: EngineConfig = DEFAULT_CONFIG

    def __len__(self) -> int:
        return len(self.time_points)

    @property
    def max_depth(self) -> float:
        return max(self.depth_points)

    @property
    def duration(self) -> float:
        return self.time_points[-1] - self.time_points[0]

    @property
    def final_tissue(self) -> TissueState:
        return TissueState(self.compartment_pressures[-1])

    def tissue_at(self, index: int) -> TissueState:
        return TissueState(self.compartment_pressures[index])

    def pressures_for(self, compartment_id: int) -> np.ndarray:
        """Pressure series of one compartment (1-based id)."""
        if not 1 <= compartment_id <= NUM_COMPARTMENTS:
            raise KeyError(compartment_id)
        return self.compartment_pressures[:, compartment_id - 1]

    def ceiling_depths(self, gf: float) -> List[float]:
        """Ceiling depth (m) at every sample for a fixed gradient factor."""
        return [
            ceiling_depth(TissueState(row), gf, self.config)
            for row in self.compartment_pressures
        ]


class ProfileEvaluator:
    """Drive the tissue simulation along a waypoint list."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config

    def evaluate(
        self,
        waypoints: Sequence[Waypoint],
        initial_tissue: Optional[TissueState] = None,
        gases: Optional[Sequence[Gas]] = None,
    ) -> ProfileResult:
        """Run a profile through the ZH-L16 compartments.

        Args:
            waypoints: time-ascending waypoints; the first is usually (0, 0)
            initial_tissue: starting state, surface equilibrium on the first gas if None
            gases: gas table; a waypoint's gas_id must name one of them.
                   Air is used when no gases are given.

        Returns:
            ProfileResult with one sample per waypoint
        """
        gases = list(gases) if gases else [Gas.air()]
        validate_waypoints(waypoints)
        unknown = sorted({
            wp.gas_id for wp in waypoints
            if wp.gas_id and find_gas(gases, wp.gas_id) is None
        })
        if unknown:
            raise ProfileValidationError([f"Unknown gas id: {gas_id}" for gas_id in unknown])

        config = self.config
        active = active_gases(waypoints, gases)

        if initial_tissue is None:
            state = TissueState.surface(gases[0].n2, config)
        else:
            state = initial_tissue

        history = [state.pressures]
        for i in range(len(waypoints) - 1):
            wp1, wp2 = waypoints[i], waypoints[i + 1]
            duration = wp2.time - wp1.time
            n2 = active[i].n2
            if wp1.depth != wp2.depth:
                state = simulate_depth_change(state, wp1.depth, wp2.depth, duration, n2, config)
            else:
                state = simulate_constant_depth(state, wp1.depth, duration, n2, config)
            history.append(state.pressures)

        compartment_pressures = np.vstack(history)
        compartment_pressures.setflags(write=False)

        ambients = tuple(
            float(ambient_pressure(wp.depth, config.surface_pressure, config.meters_per_bar))
            for wp in waypoints
        )
        n2_fractions = tuple(gas.n2 for gas in active)
        alveolar = tuple(
            float(alveolar_n2_pressure(amb, n2, config.water_vapor_pressure))
            for amb, n2 in zip(ambients, n2_fractions)
        )
        switches = tuple(gas_switch_events(waypoints, gases))

        logger.debug(
            f"Evaluated {len(waypoints)} waypoints over {waypoints[-1].time - waypoints[0].time:.1f} min, "
            f"{len(switches)} gas switches"
        )

        return ProfileResult(
            time_points=tuple(float(wp.time) for wp in waypoints),
            depth_points=tuple(float(wp.depth) for wp in waypoints),
            ambient_pressures=ambients,
            n2_fractions=n2_fractions,
            alveolar_n2_pressures=alveolar,
            gas_ids=tuple(gas.id for gas in active),
            compartment_pressures=compartment_pressures,
            gas_switches=switches,
            config=config,
        )


def evaluate(
    waypoints: Sequence[Waypoint],
    initial_tissue: Optional[TissueState] = None,
    gases: Optional[Sequence[Gas]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> ProfileResult:
    """Evaluate a profile with the given (default) configuration."""
    return ProfileEvaluator(config).evaluate(waypoints, initial_tissue, gases)
