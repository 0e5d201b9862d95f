"""
No-decompression limit search.

Bottom time is counted from the start of the dive, descent included. The
NDL is the largest whole number of minutes after which the diver can still
ascend directly to the surface under gf_high.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .buhlmann_constants import AIR_N2_FRACTION
from .ceiling import controlling_ceiling
from .config import DEFAULT_CONFIG, EngineConfig
from .tissue import TissueState, simulate_constant_depth, simulate_depth_change

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NDLResult:
    ndl: float  # whole minutes, or math.inf when no limit was found
    controlling_compartment: Optional[int]

    @property
    def unlimited(self) -> bool:
        return math.isinf(self.ndl)


def calculate_ndl(
    depth: float,
    n2_fraction: float = AIR_N2_FRACTION,
    gf_high: float = 1.0,
    tissue: Optional[TissueState] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> NDLResult:
    """
    Binary search for the no-decompression limit at a depth.

    Args:
        depth: Bottom depth in meters
        n2_fraction: N2 fraction of the bottom gas
        gf_high: Gradient factor applied to the surface ceiling check
        tissue: Pre-loaded tissue (repetitive dive), surface equilibrium if None

    Returns:
        NDLResult; controlling_compartment is the compartment whose ceiling
        first drops below the surface one minute after the NDL.
    """
    if not 0.0 < gf_high <= 1.0:
        raise ValueError(f"gf_high must be in (0, 1.0], got {gf_high}")
    if depth < 0:
        raise ValueError(f"depth must be >= 0, got {depth}")

    start = tissue if tissue is not None else TissueState.surface(n2_fraction, config)
    descent_time = depth / config.descent_rate
    at_bottom = simulate_depth_change(start, 0.0, depth, descent_time, n2_fraction, config)

    def ceiling_at(minutes: int):
        state = simulate_constant_depth(
            at_bottom, depth, minutes - descent_time, n2_fraction, config
        )
        return controlling_ceiling(state, gf_high, config)

    _, compartment = controlling_ceiling(at_bottom, gf_high, config)
    if compartment is not None:
        logger.debug(f"NDL at {depth}m: ceiling already present after descent (TC{compartment})")
        return NDLResult(0, compartment)

    # lo: no ceiling (still descending at floor(descent_time)); hi: ceiling
    lo = int(math.floor(descent_time))
    hi = max(config.max_ndl_time, lo + 1)
    _, compartment = ceiling_at(hi)
    if compartment is None:
        logger.debug(f"NDL at {depth}m: unlimited within {hi} min")
        return NDLResult(math.inf, None)

    for _ in range(config.max_iterations):
        if hi - lo <= 1:
            break
        mid = (lo + hi) // 2
        _, mid_compartment = ceiling_at(mid)
        if mid_compartment is None:
            lo = mid
        else:
            hi, compartment = mid, mid_compartment
    else:
        logger.warning(f"NDL search at {depth}m did not converge")
        return NDLResult(math.inf, None)

    logger.debug(f"NDL at {depth}m: {lo} min (TC{compartment})")
    return NDLResult(lo, compartment)


def requires_deco(
    depth: float,
    bottom_time: float,
    n2_fraction: float = AIR_N2_FRACTION,
    gf_high: float = 1.0,
    config: EngineConfig = DEFAULT_CONFIG,
) -> bool:
    """True if the bottom time exceeds the NDL for this depth and gas."""
    return bottom_time > calculate_ndl(depth, n2_fraction, gf_high, config=config).ndl
