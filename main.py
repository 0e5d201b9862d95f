"""
decosim - Bühlmann ZH-L16 Dive Planner

Plans a square dive with gradient factors: NDL check, decompression stops
when required, tissue loading along the resulting profile.

Usage:
    python main.py                              # Run with default settings below
    python main.py --depth 40 --time 30         # Quick square profile override
    python main.py --gf 30 85 --deco-gas ean50  # GF 30/85 with an EAN50 deco gas
    python main.py --plot                       # Plot depth and tissue loading
"""

import argparse
import logging

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import colormaps

from decosim import evaluate, get_predefined_gas, load_config, plan_dive
from decosim.buhlmann_constants import COMPARTMENTS
from decosim.ceiling import N2_A, N2_B, adjusted_m_value
from decosim.oxygen import oxygen_exposure


# --- USER CONFIGURATION ---
# Edit these values to plan your dive, or override via CLI arguments.

DIVE_CONFIG = {
    "depth_m": 40,                  # Bottom depth (meters)
    "bottom_time_min": 30,          # Minutes from dive start until leaving the bottom
    "bottom_gas": "air",            # Gas id from the predefined catalogue
    "deco_gases": [],               # e.g. ["ean50", "o2"]
}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_gases(config: dict) -> list:
    gases = []
    for gas_id in [config["bottom_gas"]] + list(config["deco_gases"]):
        gas = get_predefined_gas(gas_id)
        if gas is None:
            raise ValueError(f"Unknown gas: {gas_id}")
        gases.append(gas)
    return gases


def print_plan(plan, gases, engine_config) -> None:
    """Print the dive plan summary and stop table."""
    gf_low, gf_high = engine_config.gf.as_percent()
    print("--- DIVE PLAN ---")
    print(f"Gases: {', '.join(g.name or g.id for g in gases)}")
    print(f"Gradient factors: {gf_low}/{gf_high}")
    print(f"NDL: {plan.ndl} min")

    if not plan.requires_deco:
        print("No decompression required (safety stop included).")
        return

    schedule = plan.schedule
    print(f"First stop: {schedule.first_stop_depth:.0f}m "
          f"(controlling compartment {schedule.controlling_compartment})")
    print(f"{'Depth':>7} {'Time':>6}  Gas")
    for stop in schedule.stops:
        print(f"{stop.depth:>6.0f}m {stop.time:>4d}'  {stop.gas_id}")
    print(f"Total stop time: {schedule.total_stop_time} min")
    print(f"Time to surface: {schedule.tts:.1f} min")


def print_results(result, gases, engine_config) -> None:
    """Print the surface state of the evaluated plan."""
    exposure = oxygen_exposure(result, gases)
    final = result.final_tissue.pressures
    limits = adjusted_m_value(engine_config.surface_pressure, N2_A, N2_B, engine_config.gf.gf_high)
    margin = limits - final
    tightest = int(np.argmin(margin))

    print("\n--- SIMULATION RESULTS ---")
    print(f"Runtime: {result.duration:.1f} min, max depth {result.max_depth:.0f}m")
    print(f"Tightest compartment at surface: {COMPARTMENTS[tightest].label} "
          f"(margin {margin[tightest]:.3f} bar)")
    print(f"CNS: {exposure.cns_percent:.1f}%  OTU: {exposure.otu:.1f}")


def plot_results(result, engine_config) -> None:
    """Depth profile with ceiling, and N2 tension of every compartment."""
    _fig, (ax_depth, ax_tissue) = plt.subplots(
        2, 1, figsize=(12, 9), sharex=True, gridspec_kw={"height_ratios": [1, 1.5]},
    )

    ax_depth.plot(result.time_points, result.depth_points, "b-", linewidth=2, label="Depth")
    ax_depth.fill_between(result.time_points, result.depth_points, alpha=0.15, color="blue")
    ax_depth.plot(
        result.time_points, result.ceiling_depths(engine_config.gf.gf_high),
        "r--", linewidth=1, label="Ceiling (GF high)",
    )
    ax_depth.set_ylabel("Depth (m)")
    ax_depth.invert_yaxis()
    ax_depth.legend(loc="lower right")
    ax_depth.grid(True, alpha=0.3)

    cmap = colormaps["viridis"]
    colors = cmap(np.linspace(0, 1, len(COMPARTMENTS)))
    for compartment, color in zip(COMPARTMENTS, colors):
        ax_tissue.plot(
            result.time_points, result.pressures_for(compartment.id),
            color=color, linewidth=1.5, label=f"TC{compartment.id} ({compartment.half_time:g} min)",
        )
    ax_tissue.plot(
        result.time_points, result.alveolar_n2_pressures,
        color="black", linestyle=":", label="Alveolar ppN2",
    )
    ax_tissue.set_xlabel("Time (min)")
    ax_tissue.set_ylabel("ppN2 (bar)")
    ax_tissue.set_title("Tissue N2 tension")
    ax_tissue.legend(loc="upper right", fontsize=7, ncol=2)
    ax_tissue.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for quick overrides."""
    parser = argparse.ArgumentParser(
        description="decosim - Bühlmann ZH-L16 dive planner",
    )
    parser.add_argument("--depth", type=float, help="Dive depth in meters")
    parser.add_argument("--time", type=float, help="Bottom time in minutes")
    parser.add_argument("--gas", type=str, help="Bottom gas id (e.g. air, ean32)")
    parser.add_argument(
        "--deco-gas", action="append", dest="deco_gases",
        help="Deco gas id, may be repeated (e.g. --deco-gas ean50 --deco-gas o2)",
    )
    parser.add_argument(
        "--gf", type=float, nargs=2, metavar=("LOW", "HIGH"),
        help="Gradient factors in percent (overrides config)",
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to engine config YAML (default: config.yaml)",
    )
    parser.add_argument("--plot", action="store_true", help="Plot the evaluated profile")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging(args.verbose)

    # Apply CLI overrides to config
    config = DIVE_CONFIG.copy()
    if args.depth is not None:
        config["depth_m"] = args.depth
    if args.time is not None:
        config["bottom_time_min"] = args.time
    if args.gas is not None:
        config["bottom_gas"] = args.gas
    if args.deco_gases:
        config["deco_gases"] = args.deco_gases

    engine_config = load_config(args.config, gf_override=args.gf)
    gases = build_gases(config)
    gf_low, gf_high = engine_config.gf.as_percent()

    plan = plan_dive(
        config["depth_m"], config["bottom_time_min"], gases,
        gf_low, gf_high, engine_config,
    )
    print_plan(plan, gases, engine_config)

    result = evaluate(plan.waypoints, gases=gases, config=engine_config)
    print_results(result, gases, engine_config)

    if args.plot:
        plot_results(result, engine_config)


if __name__ == "__main__":
    main()
