"""
Tissue state and inert gas exchange.

Haldane equation for constant depth, Schreiner equation for linear depth
change. Per-compartment functions accept floats or numpy arrays; the
simulate_* helpers apply them to a whole TissueState and return a new one.
"""

from collections.abc import Mapping
from typing import Dict, Iterator

import numpy as np

from .buhlmann_constants import (
    AIR_N2_FRACTION,
    COMPARTMENT_IDS,
    NUM_COMPARTMENTS,
    ZH_L16_N2_HALFTIMES,
)
from .config import DEFAULT_CONFIG, EngineConfig
from .pressure import alveolar_n2_pressure, ambient_pressure

# Decay constants k = ln(2) / halftime, shape (16,)
N2_K = np.log(2) / np.array(ZH_L16_N2_HALFTIMES)
N2_HALFTIMES = np.array(ZH_L16_N2_HALFTIMES)


class TissueState(Mapping):
    """Immutable N2 tension (bar) per compartment, keyed by compartment id 1..16."""

    __slots__ = ("_pressures",)

    def __init__(self, pressures):
        arr = np.array(pressures, dtype=float)
        if arr.shape != (NUM_COMPARTMENTS,):
            raise ValueError(
                f"Expected {NUM_COMPARTMENTS} compartment pressures, got shape {arr.shape}"
            )
        if not np.all(np.isfinite(arr)) or np.any(arr < 0):
            raise ValueError(f"Tissue pressures must be finite and >= 0, got {arr}")
        arr.setflags(write=False)
        self._pressures = arr

    @classmethod
    def surface(
        cls,
        n2_fraction: float = AIR_N2_FRACTION,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> "TissueState":
        """Equilibrium at the surface breathing a gas with the given N2 fraction."""
        p = alveolar_n2_pressure(
            config.surface_pressure, n2_fraction, config.water_vapor_pressure
        )
        return cls(np.full(NUM_COMPARTMENTS, p))

    @classmethod
    def from_mapping(cls, pressures: Dict[int, float]) -> "TissueState":
        missing = set(COMPARTMENT_IDS) - set(pressures)
        if missing:
            raise ValueError(f"Missing compartment ids: {sorted(missing)}")
        return cls([pressures[cid] for cid in COMPARTMENT_IDS])

    @property
    def pressures(self) -> np.ndarray:
        """Read-only array of pressures ordered by compartment id."""
        return self._pressures

    def __getitem__(self, compartment_id: int) -> float:
        if compartment_id not in COMPARTMENT_IDS:
            raise KeyError(compartment_id)
        return float(self._pressures[compartment_id - 1])

    def __iter__(self) -> Iterator[int]:
        return iter(COMPARTMENT_IDS)

    def __len__(self) -> int:
        return NUM_COMPARTMENTS

    def __repr__(self) -> str:
        values = ", ".join(f"{p:.4f}" for p in self._pressures)
        return f"TissueState([{values}])"


def haldane_vec(pt0, palv, t: float, k):
    """Haldane equation: P(t) = P_alv + (P0 - P_alv) * exp(-k t)."""
    return palv + (pt0 - palv) * np.exp(-k * t)


def schreiner_vec(pt0, palv0, rate: float, t: float, k):
    """Schreiner equation for a linear change of alveolar pressure.

    P(t) = P_alv0 + R (t - 1/k) - (P_alv0 - P0 - R/k) * exp(-k t)
    """
    return palv0 + rate * (t - 1.0 / k) - (palv0 - pt0 - rate / k) * np.exp(-k * t)


def _check_duration(duration: float) -> None:
    if duration < 0:
        raise ValueError(f"Segment duration must be >= 0, got {duration}")


def _alveolar_at(depth: float, n2_fraction: float, config: EngineConfig) -> float:
    ambient = ambient_pressure(depth, config.surface_pressure, config.meters_per_bar)
    return alveolar_n2_pressure(ambient, n2_fraction, config.water_vapor_pressure)


def advance_constant_depth(
    pressure,
    depth: float,
    duration_minutes: float,
    n2_fraction: float,
    half_time,
    config: EngineConfig = DEFAULT_CONFIG,
):
    """Tissue pressure after `duration_minutes` at a constant depth."""
    _check_duration(duration_minutes)
    if duration_minutes == 0:
        return pressure
    k = np.log(2) / half_time
    target = _alveolar_at(depth, n2_fraction, config)
    return haldane_vec(pressure, target, duration_minutes, k)


def advance_depth_change(
    pressure,
    from_depth: float,
    to_depth: float,
    duration_minutes: float,
    n2_fraction: float,
    half_time,
    config: EngineConfig = DEFAULT_CONFIG,
):
    """Tissue pressure after a linear depth change lasting `duration_minutes`."""
    _check_duration(duration_minutes)
    if duration_minutes == 0:
        return pressure
    k = np.log(2) / half_time
    ambient_from = ambient_pressure(from_depth, config.surface_pressure, config.meters_per_bar)
    ambient_to = ambient_pressure(to_depth, config.surface_pressure, config.meters_per_bar)
    rate = n2_fraction * (ambient_to - ambient_from) / duration_minutes
    initial_alveolar = alveolar_n2_pressure(
        ambient_from, n2_fraction, config.water_vapor_pressure
    )
    return schreiner_vec(pressure, initial_alveolar, rate, duration_minutes, k)


def simulate_constant_depth(
    state: TissueState,
    depth: float,
    duration_minutes: float,
    n2_fraction: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> TissueState:
    """Advance every compartment through a constant-depth segment."""
    if duration_minutes == 0:
        return state
    return TissueState(
        advance_constant_depth(
            state.pressures, depth, duration_minutes, n2_fraction, N2_HALFTIMES, config
        )
    )


def simulate_depth_change(
    state: TissueState,
    from_depth: float,
    to_depth: float,
    duration_minutes: float,
    n2_fraction: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> TissueState:
    """Advance every compartment through a linear ascent or descent."""
    if duration_minutes == 0:
        return state
    return TissueState(
        advance_depth_change(
            state.pressures, from_depth, to_depth, duration_minutes,
            n2_fraction, N2_HALFTIMES, config,
        )
    )


def apply_surface_interval(
    state: TissueState,
    minutes: float,
    n2_fraction: float = AIR_N2_FRACTION,
    config: EngineConfig = DEFAULT_CONFIG,
) -> TissueState:
    """Off-gas at the surface between two dives."""
    return simulate_constant_depth(state, 0.0, minutes, n2_fraction, config)
