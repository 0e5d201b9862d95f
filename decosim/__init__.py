"""
Bühlmann ZH-L16 decompression engine with gradient factors.

Modules:
    - buhlmann_constants: ZH-L16 compartment table and gradient factors
    - pressure: depth / ambient / alveolar pressure conversions
    - tissue: Haldane and Schreiner gas exchange, immutable TissueState
    - evaluator: evaluate a waypoint profile into a tissue time series
    - ceiling: M-values, ceilings, first stop and GF interpolation
    - ndl: no-decompression limit search
    - deco: ascent stop schedules and dive planning
    - gases: gas catalogue, MOD/END and gas switching
    - oxygen: CNS% and OTU exposure
"""

from .buhlmann_constants import COMPARTMENTS, GF_DEFAULT, Compartment, GradientFactors
from .ceiling import FirstStop, can_ascend_to, first_stop_depth, interpolated_gf
from .config import DEFAULT_CONFIG, EngineConfig, load_config
from .deco import DecoSchedule, DecoStop, DivePlan, generate_deco_schedule, plan_dive
from .errors import (
    DecoScheduleError,
    DecoSimError,
    GasError,
    InvariantViolation,
    ProfileValidationError,
)
from .evaluator import ProfileEvaluator, ProfileResult, evaluate
from .gases import Gas, GasSwitch, get_predefined_gas
from .ndl import NDLResult, calculate_ndl, requires_deco
from .oxygen import OxygenExposure, oxygen_exposure
from .profile_generator import ProfileGenerator, Waypoint, merge_dives, validate_waypoints
from .tissue import TissueState, apply_surface_interval

__version__ = "0.1.0"

__all__ = [
    "COMPARTMENTS",
    "Compartment",
    "GradientFactors",
    "GF_DEFAULT",
    "FirstStop",
    "can_ascend_to",
    "first_stop_depth",
    "interpolated_gf",
    "EngineConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "DecoStop",
    "DecoSchedule",
    "DivePlan",
    "generate_deco_schedule",
    "plan_dive",
    "DecoSimError",
    "ProfileValidationError",
    "GasError",
    "DecoScheduleError",
    "InvariantViolation",
    "ProfileEvaluator",
    "ProfileResult",
    "evaluate",
    "Gas",
    "GasSwitch",
    "get_predefined_gas",
    "NDLResult",
    "calculate_ndl",
    "requires_deco",
    "OxygenExposure",
    "oxygen_exposure",
    "ProfileGenerator",
    "Waypoint",
    "merge_dives",
    "validate_waypoints",
    "TissueState",
    "apply_surface_interval",
]
