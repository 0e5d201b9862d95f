"""
Bühlmann ZH-L16 compartment table, physical constants and gradient factors.

Single source of truth for the nitrogen compartment definitions. Everything
here is immutable and safe to share between independent dive plans.
"""

import math
from dataclasses import dataclass
from typing import Tuple

# Surface conditions
SURFACE_PRESSURE = 1.0  # bar
METERS_PER_BAR = 10.0  # seawater, 1 bar per 10 m
WATER_VAPOR_PRESSURE = 0.0627  # bar, alveolar water vapor at 37°C
AIR_N2_FRACTION = 0.79

# ZH-L16B N2 compartment parameters (16 compartments).
# Compartment 1 uses the 5.0 min variant (ZH-L16A lists 4.0 min).
ZH_L16_N2_HALFTIMES: Tuple[float, ...] = (
    5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3, 77.0,
    109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0, 635.0,
)

# M-value coefficients: M(P) = a + P/b
ZH_L16_N2_A: Tuple[float, ...] = (
    1.1696, 1.0000, 0.8618, 0.7562, 0.6667, 0.5600, 0.4947, 0.4500,
    0.4187, 0.3798, 0.3497, 0.3223, 0.2971, 0.2737, 0.2523, 0.2327,
)

ZH_L16_N2_B: Tuple[float, ...] = (
    0.5578, 0.6514, 0.7222, 0.7825, 0.8126, 0.8434, 0.8693, 0.8910,
    0.9092, 0.9222, 0.9319, 0.9403, 0.9477, 0.9544, 0.9602, 0.9653,
)

_TISSUE_GROUPS: Tuple[str, ...] = (
    "Brain, Spinal Cord", "Brain, Spinal Cord", "Spinal Cord", "Muscle, Skin",
    "Muscle, Skin", "Muscle", "Muscle", "Muscle, Tendons",
    "Tendons, Cartilage", "Tendons, Bones", "Bones", "Bones, Fat",
    "Fat", "Fat", "Fat", "Fat",
)

NUM_COMPARTMENTS = 16


@dataclass(frozen=True)
class Compartment:
    """A theoretical tissue group with its own nitrogen half-time.

    id:        1..16, ordered by increasing half-time
    half_time: minutes to close half the gap to a new equilibrium
    a_n2:      M-value intercept (bar)
    b_n2:      M-value slope coefficient (dimensionless)
    """
    id: int
    half_time: float
    a_n2: float
    b_n2: float
    label: str = ""

    @property
    def k(self) -> float:
        return rate_constant(self.half_time)

    @property
    def category(self) -> str:
        return compartment_category(self.half_time)


COMPARTMENTS: Tuple[Compartment, ...] = tuple(
    Compartment(
        id=i + 1,
        half_time=ZH_L16_N2_HALFTIMES[i],
        a_n2=ZH_L16_N2_A[i],
        b_n2=ZH_L16_N2_B[i],
        label=f"{i + 1} - {_TISSUE_GROUPS[i]}",
    )
    for i in range(NUM_COMPARTMENTS)
)

COMPARTMENT_IDS: Tuple[int, ...] = tuple(c.id for c in COMPARTMENTS)


def rate_constant(half_time: float) -> float:
    """Exponential rate constant k = ln(2) / half_time (per minute)."""
    return math.log(2) / half_time


def compartment_category(half_time: float) -> str:
    """Descriptive speed category for a compartment half-time."""
    if half_time <= 12.5:
        return "Fast"
    if half_time <= 54.3:
        return "Medium"
    if half_time <= 146.0:
        return "Medium-Slow"
    return "Slow"


def get_compartment(compartment_id: int) -> Compartment:
    """Look up a compartment by its 1-based id."""
    if not 1 <= compartment_id <= NUM_COMPARTMENTS:
        raise KeyError(f"Unknown compartment id: {compartment_id}")
    return COMPARTMENTS[compartment_id - 1]


@dataclass(frozen=True)
class GradientFactors:
    """Gradient factor pair for Bühlmann decompression adjustments.

    gf_low:  applied at the deepest ceiling (first stop), controls first stop depth
    gf_high: applied at the surface, controls final ascent and NDL
    Values are fractions (0.0–1.0), where 1.0 = use full M-value (standard Bühlmann).
    """
    gf_low: float
    gf_high: float

    def __post_init__(self):
        if not (0.0 < self.gf_low <= 1.0):
            raise ValueError(f"gf_low must be in (0, 1.0], got {self.gf_low}")
        if not (0.0 < self.gf_high <= 1.0):
            raise ValueError(f"gf_high must be in (0, 1.0], got {self.gf_high}")
        if self.gf_low > self.gf_high:
            raise ValueError(
                f"gf_low ({self.gf_low}) must be <= gf_high ({self.gf_high})"
            )

    @classmethod
    def from_percent(cls, gf_low: float, gf_high: float) -> "GradientFactors":
        """Build from UI percentages (0–100]."""
        for name, value in (("gf_low", gf_low), ("gf_high", gf_high)):
            if not (0.0 < value <= 100.0):
                raise ValueError(f"{name} must be in (0, 100], got {value}")
        return cls(gf_low=gf_low / 100.0, gf_high=gf_high / 100.0)

    @property
    def is_standard(self) -> bool:
        """True if GF 100/100 (no adjustment)."""
        return self.gf_low == 1.0 and self.gf_high == 1.0

    def as_percent(self) -> Tuple[int, int]:
        return int(round(self.gf_low * 100)), int(round(self.gf_high * 100))


GF_DEFAULT = GradientFactors(gf_low=1.0, gf_high=1.0)
