"""
M-values, ceilings and gradient factor interpolation.

M-value (Bühlmann):     M = a + P_amb / b
GF-adjusted M-value:    M_gf = P_amb + gf * (M - P_amb)
Ceiling (solve for P):  P_ceil = (P_tissue - gf * a) / (1 - gf + gf / b)
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .buhlmann_constants import SURFACE_PRESSURE, ZH_L16_N2_A, ZH_L16_N2_B
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import InvariantViolation
from .pressure import ambient_pressure, depth_from_ambient
from .tissue import TissueState

N2_A = np.array(ZH_L16_N2_A)
N2_B = np.array(ZH_L16_N2_B)


@dataclass(frozen=True)
class FirstStop:
    """Deepest mandatory stop.

    depth is rounded up to the stop grid; ambient is the unrounded ceiling
    pressure of the controlling compartment. controlling_compartment is None
    when no compartment has a ceiling below the surface.
    """
    depth: float
    ambient: float
    controlling_compartment: Optional[int]


def raw_m_value(ambient, a, b):
    """Bühlmann M-value at an ambient pressure."""
    return a + ambient / b


def adjusted_m_value(ambient, a, b, gf: float):
    """M-value reduced by a gradient factor (gf=1 gives the raw M-value)."""
    return ambient + gf * (raw_m_value(ambient, a, b) - ambient)


def ceiling_ambient(
    tissue_pressure,
    a,
    b,
    gf: float,
    surface_pressure: float = SURFACE_PRESSURE,
):
    """Lowest tolerated ambient pressure for a tissue tension, never below the surface."""
    ceiling = (tissue_pressure - gf * a) / (1.0 - gf + gf / b)
    if __debug__ and not np.all(np.isfinite(ceiling)):
        raise InvariantViolation(f"Non-finite ceiling: {ceiling}")
    return np.maximum(ceiling, surface_pressure)


def compartment_ceilings(
    state: TissueState, gf: float, config: EngineConfig = DEFAULT_CONFIG
) -> np.ndarray:
    """Ceiling ambient pressure of every compartment, ordered by id."""
    return ceiling_ambient(state.pressures, N2_A, N2_B, gf, config.surface_pressure)


def controlling_ceiling(
    state: TissueState, gf: float, config: EngineConfig = DEFAULT_CONFIG
) -> Tuple[float, Optional[int]]:
    """(ceiling ambient, compartment id) of the most restrictive compartment.

    The id is None when every ceiling is at the surface.
    """
    ceilings = compartment_ceilings(state, gf, config)
    index = int(np.argmax(ceilings))
    ceiling = float(ceilings[index])
    if ceiling <= config.surface_pressure:
        return config.surface_pressure, None
    return ceiling, index + 1


def ceiling_depth(
    state: TissueState, gf: float, config: EngineConfig = DEFAULT_CONFIG
) -> float:
    """Unrounded ceiling depth (m), 0 when surfacing is allowed."""
    ceiling, _ = controlling_ceiling(state, gf, config)
    depth = depth_from_ambient(ceiling, config.surface_pressure, config.meters_per_bar)
    if __debug__ and not (depth >= 0 and math.isfinite(depth)):
        raise InvariantViolation(f"Invalid ceiling depth: {depth}")
    return depth


def first_stop_depth(
    state: TissueState, gf_low: float, config: EngineConfig = DEFAULT_CONFIG
) -> FirstStop:
    """First stop depth on the stop grid, computed with gf_low."""
    ceiling, compartment = controlling_ceiling(state, gf_low, config)
    if compartment is None:
        return FirstStop(0.0, ceiling, None)
    depth = depth_from_ambient(ceiling, config.surface_pressure, config.meters_per_bar)
    increment = config.stop_increment
    rounded = math.ceil(depth / increment) * increment
    return FirstStop(float(rounded), ceiling, compartment)


def interpolated_gf(
    depth: float,
    gf_low: float,
    gf_high: float,
    first_stop_ambient: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> float:
    """Gradient factor at a depth, linear in ambient pressure.

    gf_low applies at the first stop, gf_high at the surface. Deeper than the
    first stop the value stays at gf_low.
    """
    surface = config.surface_pressure
    if first_stop_ambient <= surface:
        return gf_high
    ambient = ambient_pressure(depth, surface, config.meters_per_bar)
    fraction = (first_stop_ambient - ambient) / (first_stop_ambient - surface)
    gf = gf_low + (gf_high - gf_low) * fraction
    return min(max(gf, min(gf_low, gf_high)), max(gf_low, gf_high))


def can_ascend_to(
    state: TissueState, depth: float, gf: float, config: EngineConfig = DEFAULT_CONFIG
) -> bool:
    """True if every compartment is within its GF-adjusted M-value at `depth`."""
    ambient = ambient_pressure(depth, config.surface_pressure, config.meters_per_bar)
    limits = adjusted_m_value(ambient, N2_A, N2_B, gf)
    return bool(np.all(state.pressures <= limits))
