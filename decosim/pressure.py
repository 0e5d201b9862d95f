"""
Depth / ambient pressure / alveolar partial pressure conversions.

Pure functions; arguments may be floats or numpy arrays.
"""

from .buhlmann_constants import METERS_PER_BAR, SURFACE_PRESSURE, WATER_VAPOR_PRESSURE


def ambient_pressure(
    depth: float,
    surface_pressure: float = SURFACE_PRESSURE,
    meters_per_bar: float = METERS_PER_BAR,
) -> float:
    """Absolute pressure (bar) at a depth in meters of seawater."""
    return surface_pressure + depth / meters_per_bar


def depth_from_ambient(
    ambient: float,
    surface_pressure: float = SURFACE_PRESSURE,
    meters_per_bar: float = METERS_PER_BAR,
) -> float:
    """Depth (m) at which the given absolute pressure is reached."""
    return (ambient - surface_pressure) * meters_per_bar


def alveolar_n2_pressure(
    ambient: float,
    n2_fraction: float,
    water_vapor_pressure: float = WATER_VAPOR_PRESSURE,
) -> float:
    """Alveolar N2 partial pressure (bar), water-vapor corrected.

    P_alv = (P_ambient - P_H2O) * fN2
    """
    return (ambient - water_vapor_pressure) * n2_fraction


def partial_pressure(
    depth: float,
    fraction: float,
    surface_pressure: float = SURFACE_PRESSURE,
    meters_per_bar: float = METERS_PER_BAR,
) -> float:
    """Inspired partial pressure of a gas component at depth (no vapor correction)."""
    return fraction * ambient_pressure(depth, surface_pressure, meters_per_bar)
