"""
Engine configuration.

Every tunable of the engine lives on EngineConfig with a stated default.
A YAML file (config.yaml at the repository root) can override any of them.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Optional, Tuple

import yaml

from .buhlmann_constants import (
    GradientFactors,
    GF_DEFAULT,
    METERS_PER_BAR,
    SURFACE_PRESSURE,
    WATER_VAPOR_PRESSURE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Physical constants, ascent rules and search bounds for one engine run."""

    surface_pressure: float = SURFACE_PRESSURE  # bar
    meters_per_bar: float = METERS_PER_BAR
    water_vapor_pressure: float = WATER_VAPOR_PRESSURE  # bar
    ascent_rate: float = 10.0  # m/min
    descent_rate: float = 20.0  # m/min
    stop_increment: float = 3.0  # m
    deco_max_ppo2: float = 1.6  # bar, MOD limit for gas switches on ascent
    max_stop_time: int = 999  # minutes at a single stop
    max_ndl_time: int = 999  # minutes, NDL search upper bound
    max_iterations: int = 10000  # outer loop guard for schedule generation
    gf: GradientFactors = field(default=GF_DEFAULT)

    def __post_init__(self):
        positive = (
            "surface_pressure", "meters_per_bar", "ascent_rate",
            "descent_rate", "stop_increment", "deco_max_ppo2",
            "max_stop_time", "max_ndl_time", "max_iterations",
        )
        for name in positive:
            value = getattr(self, name)
            if not value > 0:
                raise ValueError(f"{name} must be > 0, got {value}")
        if not (0.0 <= self.water_vapor_pressure < self.surface_pressure):
            raise ValueError(
                f"water_vapor_pressure must be in [0, surface_pressure), "
                f"got {self.water_vapor_pressure}"
            )


DEFAULT_CONFIG = EngineConfig()

_SECTION_KEYS = {
    "pressure": ("surface_pressure", "meters_per_bar", "water_vapor_pressure"),
    "deco": (
        "ascent_rate", "descent_rate", "stop_increment", "deco_max_ppo2",
        "max_stop_time", "max_ndl_time", "max_iterations",
    ),
}


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.yaml")


def load_config(
    config_path: Optional[str] = None,
    gf_override: Optional[Tuple[float, float]] = None,
) -> EngineConfig:
    """Load EngineConfig from a YAML file with optional GF percentage override.

    Recognised layout:
        pressure: {surface_pressure, meters_per_bar, water_vapor_pressure}
        deco:     {ascent_rate, descent_rate, stop_increment, deco_max_ppo2,
                   max_stop_time, max_ndl_time, max_iterations}
        buhlmann: {gf_low, gf_high}   # percentages, 0-100

    A missing file yields the defaults. Unknown keys are ignored with a warning.
    """
    if config_path is None:
        config_path = default_config_path()

    values = {}
    gf = GF_DEFAULT

    if os.path.exists(config_path):
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        for section, keys in _SECTION_KEYS.items():
            section_cfg = config.get(section) or {}
            for key, value in section_cfg.items():
                if key not in keys:
                    logger.warning(f"Ignoring unknown config key {section}.{key}")
                    continue
                values[key] = value

        buhlmann_cfg = config.get("buhlmann") or {}
        if buhlmann_cfg:
            gf = GradientFactors.from_percent(
                float(buhlmann_cfg.get("gf_low", 100)),
                float(buhlmann_cfg.get("gf_high", 100)),
            )
    else:
        logger.debug(f"No config file at {config_path}, using defaults")

    if gf_override:
        gf = GradientFactors.from_percent(gf_override[0], gf_override[1])

    types = {f.name: f.type for f in fields(EngineConfig)}
    for key, value in values.items():
        values[key] = int(value) if types[key] is int else float(value)

    return EngineConfig(gf=gf, **values)
