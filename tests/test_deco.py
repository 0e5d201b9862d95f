"""
Tests for decompression schedule generation and dive planning.

These tests validate the scheduling rules:
- No stops at or inside the NDL
- The stop safety check against the next shallower depth
- Gradient factor conservatism
- Gas switching on ascent
- Round trip through the profile evaluator
"""

import logging

import numpy as np
import pytest

from decosim.ceiling import N2_A, N2_B, adjusted_m_value, first_stop_depth, interpolated_gf
from decosim.config import EngineConfig
from decosim.deco import (
    DecoSchedule,
    generate_deco_schedule,
    next_stop_depth,
    plan_dive,
)
from decosim.errors import DecoScheduleError
from decosim.evaluator import evaluate
from decosim.gases import Gas, get_predefined_gas
from decosim.ndl import calculate_ndl
from decosim.pressure import ambient_pressure
from decosim.tissue import TissueState, simulate_constant_depth, simulate_depth_change

AIR = Gas.air()
EAN50 = get_predefined_gas("ean50")
EAN80 = get_predefined_gas("ean80")
OXYGEN = get_predefined_gas("o2")


def bottom_tissue(depth: float, bottom_time: float, n2: float = 0.79) -> TissueState:
    """Tissue after descending at 20 m/min and staying until `bottom_time`."""
    descent = depth / 20.0
    state = simulate_depth_change(TissueState.surface(n2), 0, depth, descent, n2)
    return simulate_constant_depth(state, depth, bottom_time - descent, n2)


def assert_stops_respect_next_depth(waypoints, result, schedule, gf_low, gf_high):
    """At every stop departure, tissue is within the M-value of the next grid depth."""
    anchor = schedule.first_stop_ambient
    stop_depths = {stop.depth for stop in schedule.stops}
    checked = 0
    for i in range(len(waypoints) - 1):
        wp, nxt = waypoints[i], waypoints[i + 1]
        leaving_stop = wp.depth in stop_depths and nxt.depth < wp.depth
        if not leaving_stop:
            continue
        target = next_stop_depth(wp.depth, 3.0)
        gf = interpolated_gf(target, gf_low, gf_high, anchor)
        limits = adjusted_m_value(ambient_pressure(target), N2_A, N2_B, gf)
        assert np.all(result.compartment_pressures[i] <= limits + 1e-9), \
            f"M-value exceeded leaving {wp.depth}m"
        checked += 1
    return checked


class TestNextStopDepth:

    def test_on_grid(self):
        assert next_stop_depth(21, 3) == 18
        assert next_stop_depth(3, 3) == 0

    def test_off_grid(self):
        """The first step from an off-grid depth lands on the grid."""
        assert next_stop_depth(40, 3) == 39
        assert next_stop_depth(2, 3) == 0


class TestNoDeco:
    """Dives inside the NDL."""

    def test_schedule_empty_at_ndl(self):
        """30 m for 17 min on air needs no stop."""
        schedule = generate_deco_schedule(bottom_tissue(30, 17), 30)
        assert schedule.stops == ()
        assert schedule.total_stop_time == 0
        assert not schedule.requires_deco
        assert schedule.tts == pytest.approx(3.0)

    def test_plan_within_ndl_uses_safety_stop(self):
        plan = plan_dive(30, 17)
        assert not plan.requires_deco
        assert plan.schedule is None
        assert plan.ndl == 17
        depths = [wp.depth for wp in plan.waypoints]
        assert depths[0] == 0 and depths[-1] == 0
        assert depths.count(5.0) == 2

    @pytest.mark.parametrize("depth", [18, 24, 30, 36, 40])
    def test_schedule_empty_at_ndl_for_several_depths(self, depth):
        ndl = calculate_ndl(depth).ndl
        schedule = generate_deco_schedule(bottom_tissue(depth, ndl), depth)
        assert schedule.stops == ()
        assert schedule.total_stop_time == 0

    @pytest.mark.parametrize("depth", [18, 30, 40])
    @pytest.mark.parametrize("gf", [(100, 100), (30, 85), (50, 80)])
    def test_plan_at_ndl_has_no_stops(self, depth, gf):
        """Bottom time equal to the NDL for gf_high never needs stop time."""
        ndl = calculate_ndl(depth, gf_high=gf[1] / 100.0).ndl
        plan = plan_dive(depth, ndl, None, gf[0], gf[1])
        assert plan.ndl == ndl
        assert not plan.requires_deco
        assert plan.schedule is None
        result = evaluate(plan.waypoints)
        limits = adjusted_m_value(1.0, N2_A, N2_B, gf[1] / 100.0)
        assert np.all(result.final_tissue.pressures <= limits)


class TestDecoSchedule40m30min:
    """40 m / 30 min on air."""

    def test_gf_100_produces_stops(self):
        schedule = generate_deco_schedule(bottom_tissue(40, 30), 40)
        assert schedule.requires_deco
        assert len(schedule.stops) > 0
        assert schedule.total_stop_time == sum(s.time for s in schedule.stops)
        assert schedule.total_stop_time > 0
        assert schedule.ascent_time == pytest.approx(4.0)
        assert schedule.tts == pytest.approx(schedule.total_stop_time + 4.0)

    def test_stops_on_grid_and_ascending(self):
        schedule = generate_deco_schedule(bottom_tissue(40, 30), 40)
        depths = [s.depth for s in schedule.stops]
        assert depths == sorted(depths, reverse=True)
        assert all(d % 3 == 0 and d > 0 for d in depths)
        assert depths[-1] == 3.0
        assert all(s.gas_id == "bottom" for s in schedule.stops)

    def test_first_stop_matches_schedule(self):
        schedule = generate_deco_schedule(bottom_tissue(40, 30), 40)
        assert schedule.first_stop_depth >= schedule.stops[0].depth
        assert schedule.controlling_compartment is not None

    def test_safety_invariant_holds_at_every_stop(self):
        """Tissue leaving each stop respects the next shallower depth."""
        plan = plan_dive(40, 30)
        result = evaluate(plan.waypoints)
        checked = assert_stops_respect_next_depth(
            plan.waypoints, result, plan.schedule, 1.0, 1.0
        )
        assert checked == len(plan.schedule.stops)

    def test_gradient_factors_add_conservatism(self):
        tissue = bottom_tissue(40, 30)
        standard = generate_deco_schedule(tissue, 40, gf_low=1.0, gf_high=1.0)
        conservative = generate_deco_schedule(tissue, 40, gf_low=0.3, gf_high=0.85)
        assert conservative.first_stop_depth >= standard.first_stop_depth
        assert conservative.total_stop_time > standard.total_stop_time

    def test_gf_slope_starts_at_unrounded_ceiling(self):
        """gf_low applies at the raw first stop ceiling, not the rounded stop depth."""
        tissue = bottom_tissue(40, 30)
        first = first_stop_depth(tissue, 0.3)
        schedule = generate_deco_schedule(tissue, 40, gf_low=0.3, gf_high=0.85)
        assert schedule.first_stop_depth == 21.0
        assert schedule.first_stop_ambient == pytest.approx(first.ambient)
        assert schedule.first_stop_ambient < ambient_pressure(21.0)

        anchor = schedule.first_stop_ambient
        ceiling_depth = (anchor - 1.0) * 10.0
        assert interpolated_gf(ceiling_depth, 0.3, 0.85, anchor) == pytest.approx(0.3)
        assert interpolated_gf(18, 0.3, 0.85, anchor) < interpolated_gf(
            18, 0.3, 0.85, ambient_pressure(21.0)
        )
        assert schedule.total_stop_time == 38

    def test_no_ceiling_anchors_at_surface(self):
        schedule = generate_deco_schedule(TissueState.surface(), 12, gf_low=0.3, gf_high=0.85)
        assert schedule.first_stop_ambient == 1.0
        assert schedule.stops == ()

    def test_input_tissue_not_modified(self):
        tissue = bottom_tissue(40, 30)
        before = tissue.pressures.copy()
        schedule = generate_deco_schedule(tissue, 40)
        np.testing.assert_array_equal(tissue.pressures, before)
        assert schedule.final_tissue is not tissue

    def test_deterministic(self):
        tissue = bottom_tissue(40, 30)
        assert generate_deco_schedule(tissue, 40).stops == generate_deco_schedule(tissue, 40).stops


class TestGasSwitching:

    def test_ean50_switch_at_21m(self):
        """EAN50 (MOD 22 m at 1.6 bar) is switched to at 21 m, not 24 m."""
        schedule = generate_deco_schedule(
            bottom_tissue(40, 30), 40, 0.79, 0.3, 0.85, gases=[AIR, EAN50]
        )
        by_depth = {stop.depth: stop for stop in schedule.stops}
        assert by_depth[21.0].gas_id == "ean50"
        assert all(s.gas_id == "air" for s in schedule.stops if s.depth > 21)
        assert all(s.gas_id == "ean50" for s in schedule.stops if s.depth <= 21)

    def test_bottom_gas_sets_breathing_fraction(self, caplog):
        """With a gas table the first gas is breathed, whatever n2_fraction says."""
        ean32 = get_predefined_gas("ean32")
        tissue = bottom_tissue(33, 40, ean32.n2)
        matching = generate_deco_schedule(tissue, 33, ean32.n2, gases=[ean32])
        with caplog.at_level(logging.WARNING):
            mismatched = generate_deco_schedule(tissue, 33, 0.79, gases=[ean32])
        assert mismatched.stops == matching.stops
        assert mismatched.total_stop_time > 0
        assert all(s.gas_id == "ean32" for s in mismatched.stops)
        assert "differs from bottom gas ean32" in caplog.text

    def test_deco_gas_shortens_stops(self):
        tissue = bottom_tissue(40, 30)
        air_only = generate_deco_schedule(tissue, 40, 0.79, 0.3, 0.85, gases=[AIR])
        with_ean50 = generate_deco_schedule(tissue, 40, 0.79, 0.3, 0.85, gases=[AIR, EAN50])
        assert with_ean50.total_stop_time < air_only.total_stop_time

    def test_never_reverts_to_leaner_gas(self):
        schedule = generate_deco_schedule(
            bottom_tissue(45, 35), 45, 0.79, 0.3, 0.85,
            gases=[AIR, OXYGEN, EAN50, EAN80],
        )
        table = {g.id: g for g in (AIR, OXYGEN, EAN50, EAN80)}
        o2 = [table[s.gas_id].o2 for s in schedule.stops]
        assert o2 == sorted(o2)
        assert schedule.stops[-1].gas_id == "o2"
        assert {s.gas_id for s in schedule.stops if s.depth == 9.0} == {"ean80"}


class TestPlanRoundTrip:
    """Waypoints synthesised from a schedule re-evaluate to a safe surface state."""

    @pytest.mark.parametrize(
        "depth,bottom_time,gf,gases",
        [
            (40, 30, (100, 100), None),
            (40, 30, (30, 85), None),
            (40, 30, (30, 85), [AIR, EAN50]),
            (50, 25, (40, 80), [AIR, EAN50, OXYGEN]),
        ],
    )
    def test_surface_within_gf_high(self, depth, bottom_time, gf, gases):
        plan = plan_dive(depth, bottom_time, gases, gf[0], gf[1])
        assert plan.requires_deco
        result = evaluate(plan.waypoints, gases=gases)
        limits = adjusted_m_value(1.0, N2_A, N2_B, gf[1] / 100.0)
        assert np.all(result.final_tissue.pressures <= limits + 1e-9)
        assert plan.waypoints[-1].depth == 0

    def test_round_trip_matches_schedule_tissue(self):
        """Evaluating the plan reproduces the scheduler's tissue at the last stop."""
        plan = plan_dive(40, 30, [AIR, EAN50], 30, 85)
        result = evaluate(plan.waypoints, gases=[AIR, EAN50])
        # Second to last waypoint: departure from the 3 m stop
        departure = result.tissue_at(len(result) - 2)
        last_ascent = simulate_depth_change(departure, 3, 0, 0.3, EAN50.n2)
        np.testing.assert_allclose(
            last_ascent.pressures, plan.schedule.final_tissue.pressures, rtol=1e-9
        )

    def test_gas_switch_event_in_evaluation(self):
        plan = plan_dive(40, 30, [AIR, EAN50], 30, 85)
        result = evaluate(plan.waypoints, gases=[AIR, EAN50])
        assert len(result.gas_switches) == 1
        switch = result.gas_switches[0]
        assert switch.depth == 21.0
        assert switch.from_gas.id == "air"
        assert switch.to_gas.id == "ean50"


class TestDecoErrors:

    def test_stop_bound_exhausted(self):
        config = EngineConfig(max_stop_time=1)
        with pytest.raises(DecoScheduleError, match="exceeded"):
            plan_dive(40, 60, config=config)

    def test_invalid_gradient_factors(self):
        with pytest.raises(ValueError, match="gf_low must be in"):
            plan_dive(40, 30, gf_low_percent=0)
        with pytest.raises(ValueError, match="gf_low.*must be <= gf_high"):
            generate_deco_schedule(bottom_tissue(40, 30), 40, gf_low=0.9, gf_high=0.5)

    def test_bottom_time_shorter_than_descent(self):
        with pytest.raises(ValueError, match="descent"):
            plan_dive(40, 1)

    def test_schedule_is_frozen(self):
        schedule = generate_deco_schedule(bottom_tissue(40, 30), 40)
        assert isinstance(schedule, DecoSchedule)
        with pytest.raises(Exception):  # FrozenInstanceError
            schedule.total_stop_time = 0
