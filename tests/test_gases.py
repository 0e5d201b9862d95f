"""
Tests for the gas catalogue, MOD/END and gas switching.
"""

import math

import pytest

from decosim.errors import GasError
from decosim.gases import (
    BOTTOM_GASES,
    DECO_GASES,
    GAS_SWITCH_TIME,
    PREDEFINED_GASES,
    Gas,
    active_gases,
    calculate_end,
    calculate_mod,
    gas_at_time,
    gas_at_waypoint,
    gas_switch_events,
    get_predefined_gas,
    insert_gas_switch_waypoints,
    select_deco_gas,
)
from decosim.profile_generator import Waypoint

AIR = Gas.air()
EAN32 = get_predefined_gas("ean32")
EAN50 = get_predefined_gas("ean50")
EAN80 = get_predefined_gas("ean80")
OXYGEN = get_predefined_gas("o2")


class TestGasValidation:

    def test_air(self):
        assert AIR.o2 == pytest.approx(0.21)
        assert AIR.n2 == 0.79
        assert AIR.he == 0.0

    def test_fractions_must_sum_to_one(self):
        with pytest.raises(GasError, match="sum to 1"):
            Gas("bad", 0.21, 0.70)

    def test_tolerance(self):
        Gas("ok", 0.21, 0.79 + 5e-7)

    def test_fraction_range(self):
        with pytest.raises(GasError, match="o2 fraction"):
            Gas("bad", -0.1, 1.1)

    def test_gas_error_is_value_error(self):
        with pytest.raises(ValueError):
            Gas("bad", 0.5, 0.6)

    def test_from_n2(self):
        gas = Gas.from_n2("ean32", 0.68)
        assert gas.o2 == pytest.approx(0.32)

    def test_catalogue(self):
        assert PREDEFINED_GASES == BOTTOM_GASES + DECO_GASES
        for gas in PREDEFINED_GASES:
            assert gas.o2 + gas.n2 + gas.he == pytest.approx(1.0)
        assert get_predefined_gas("nope") is None


class TestMOD:

    def test_air_at_1_4(self):
        """Air MOD at 1.4 bar is 56 m."""
        assert calculate_mod(0.21, 1.4) == 56

    def test_deco_gases_at_1_6(self):
        assert calculate_mod(0.50, 1.6) == 22
        assert calculate_mod(0.80, 1.6) == 10
        assert calculate_mod(1.00, 1.6) == 6

    def test_nitrox_32(self):
        """1.4 / 0.32 = 4.375 bar -> 33.75 m -> 33 m."""
        assert calculate_mod(0.32, 1.4) == 33
        assert EAN32.mod() == 33

    def test_no_oxygen(self):
        assert math.isinf(calculate_mod(0.0))

    def test_end(self):
        assert calculate_end(40) == 40
        assert calculate_end(50, 0.5) == 20


class TestGasAlongProfile:

    WAYPOINTS = [
        Waypoint(0, 0),
        Waypoint(2, 40, "air"),
        Waypoint(30, 40),
        Waypoint(32, 21, "ean50"),
        Waypoint(40, 21),
        Waypoint(42, 0),
    ]

    def test_gas_at_waypoint_fallback(self):
        assert gas_at_waypoint(Waypoint(0, 0), [EAN32, EAN50]) == EAN32
        assert gas_at_waypoint(Waypoint(0, 0, "unknown"), [EAN32]) == EAN32
        assert gas_at_waypoint(Waypoint(0, 0, "ean50"), [EAN32, EAN50]) == EAN50
        assert gas_at_waypoint(Waypoint(0, 0), []) == AIR

    def test_active_gases(self):
        ids = [g.id for g in active_gases(self.WAYPOINTS, [AIR, EAN50])]
        assert ids == ["air", "air", "air", "ean50", "ean50", "ean50"]

    def test_gas_at_time(self):
        gases = [AIR, EAN50]
        assert gas_at_time(self.WAYPOINTS, gases, 10) == AIR
        assert gas_at_time(self.WAYPOINTS, gases, 35) == EAN50
        assert gas_at_time([], gases, 5) == AIR

    def test_switch_events(self):
        switches = gas_switch_events(self.WAYPOINTS, [AIR, EAN50])
        assert len(switches) == 1
        assert switches[0].time == 32
        assert switches[0].from_gas.id == "air"
        assert switches[0].to_gas.id == "ean50"

    def test_single_gas_has_no_switches(self):
        assert gas_switch_events(self.WAYPOINTS, [AIR]) == []


class TestSelectDecoGas:
    """Richest gas whose MOD covers the depth; never back to a leaner gas."""

    def test_ean50_at_21_not_24(self):
        assert select_deco_gas(21, AIR, [AIR, EAN50]) == EAN50
        assert select_deco_gas(24, AIR, [AIR, EAN50]) == AIR

    def test_richest_usable_gas(self):
        gases = [AIR, EAN50, EAN80, OXYGEN]
        assert select_deco_gas(9, AIR, gases) == EAN80
        assert select_deco_gas(6, AIR, gases) == OXYGEN

    def test_never_reverts(self):
        assert select_deco_gas(21, OXYGEN, [AIR, EAN50, OXYGEN]) == OXYGEN

    def test_custom_ppo2(self):
        assert select_deco_gas(21, AIR, [AIR, EAN50], max_ppo2=1.4) == AIR


class TestInsertGasSwitchWaypoints:

    def test_inserts_switch_stop(self):
        """EAN50 switches at 21 m with a 3 minute stop; later waypoints shift."""
        waypoints = [Waypoint(0, 0), Waypoint(2, 40), Waypoint(25, 40), Waypoint(29, 0)]
        result = insert_gas_switch_waypoints(waypoints, [AIR, EAN50])

        switch = [wp for wp in result if wp.depth == 21]
        assert len(switch) == 2
        arrival, departure = switch
        assert arrival.time == 27  # ceil(25 + 19 / 10)
        assert departure.time == 27 + GAS_SWITCH_TIME
        assert arrival.gas_id == departure.gas_id == "ean50"

        # 30 + 21 m at 10 m/min
        assert result[-1].time == pytest.approx(32.1)
        assert result[-1].gas_id == "ean50"
        assert result[1].gas_id == "air"
        assert all(wp.gas_id for wp in result)

    def test_merges_into_existing_stop(self):
        waypoints = [
            Waypoint(0, 0), Waypoint(2, 40), Waypoint(25, 40),
            Waypoint(27, 21), Waypoint(30, 21), Waypoint(33, 0),
        ]
        result = insert_gas_switch_waypoints(waypoints, [AIR, EAN50])
        assert len(result) == len(waypoints)
        assert [wp.time for wp in result] == [wp.time for wp in waypoints]
        assert result[3].gas_id == "ean50"
        assert result[2].gas_id == "air"

    def test_single_gas_unchanged(self):
        waypoints = [Waypoint(0, 0), Waypoint(2, 40), Waypoint(29, 0)]
        assert insert_gas_switch_waypoints(waypoints, [AIR]) == waypoints

    def test_times_stay_ascending(self):
        waypoints = [Waypoint(0, 0), Waypoint(2, 40), Waypoint(25, 40), Waypoint(29, 0)]
        result = insert_gas_switch_waypoints(waypoints, [AIR, EAN50, OXYGEN])
        times = [wp.time for wp in result]
        assert times == sorted(times)
        assert [wp.depth for wp in result[2:]] == [40, 21, 21, 6, 6, 0]

    def test_waypoint_at_switch_depth_gets_hold(self):
        """Arriving exactly at the switch depth holds there before continuing."""
        waypoints = [
            Waypoint(0, 0), Waypoint(2, 40), Waypoint(25, 40),
            Waypoint(27, 21), Waypoint(30, 0),
        ]
        result = insert_gas_switch_waypoints(waypoints, [AIR, EAN50])
        assert [(wp.time, wp.depth) for wp in result] == [
            (0, 0), (2, 40), (25, 40), (27, 21), (30, 21), (33, 0),
        ]
        assert result[3].gas_id == "ean50"
