"""
Oxygen exposure tracking: CNS% (NOAA limits) and OTU.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from .gases import Gas, find_gas

# ppO2 (bar) -> maximum single exposure (minutes), highest ppO2 first
NOAA_CNS_LIMITS: Tuple[Tuple[float, int], ...] = (
    (1.60, 45),
    (1.55, 83),
    (1.50, 120),
    (1.45, 135),
    (1.40, 150),
    (1.35, 165),
    (1.30, 180),
    (1.25, 195),
    (1.20, 210),
    (1.10, 240),
    (1.00, 300),
    (0.90, 360),
    (0.80, 450),
    (0.70, 570),
    (0.60, 720),
)

OTU_LIMITS: Dict[str, int] = {
    "single_dive": 300,
    "daily": 300,
    "daily_exceptional": 600,
}

CNS_THRESHOLD = 0.5  # bar, no accumulation below


@dataclass(frozen=True)
class OxygenExposure:
    cns_percent: float
    otu: float

    @property
    def otu_exceeded(self) -> bool:
        return self.otu > OTU_LIMITS["single_dive"]


def cns_per_minute(ppo2: float) -> float:
    """CNS% accumulated per minute at a ppO2."""
    if ppo2 < CNS_THRESHOLD:
        return 0.0
    for limit_ppo2, max_time in NOAA_CNS_LIMITS:
        if ppo2 >= limit_ppo2:
            return 100.0 / max_time
    # Between 0.5 and 0.6 bar the 0.6 bar limit applies
    return 100.0 / NOAA_CNS_LIMITS[-1][1]


def calculate_otu(ppo2: float, minutes: float) -> float:
    """OTU = t * ((ppO2 - 0.5) / 0.5) ** 0.83, zero at or below 0.5 bar."""
    if ppo2 <= CNS_THRESHOLD:
        return 0.0
    return minutes * ((ppo2 - CNS_THRESHOLD) / CNS_THRESHOLD) ** 0.83


def oxygen_exposure(result, gases: Optional[Sequence[Gas]] = None) -> OxygenExposure:
    """CNS% and OTU over an evaluated profile.

    Each segment is charged at the O2 partial pressure of its mean ambient
    pressure, breathing the gas active at the segment start.
    """
    gases = list(gases) if gases else [Gas.air()]
    cns = 0.0
    otu = 0.0
    for i in range(len(result.time_points) - 1):
        minutes = result.time_points[i + 1] - result.time_points[i]
        gas = find_gas(gases, result.gas_ids[i]) or gases[0]
        mean_ambient = (result.ambient_pressures[i] + result.ambient_pressures[i + 1]) / 2
        ppo2 = gas.o2 * mean_ambient
        cns += cns_per_minute(ppo2) * minutes
        otu += calculate_otu(ppo2, minutes)
    return OxygenExposure(cns_percent=cns, otu=otu)
