"""
Tests for per-unit electrical loads and water occupancy
"""

import pytest

from core.config import SQFT_PER_SQM
from domain.calculations.rate_lookup import FactorLookup, RateLookup
from domain.calculations.unit_loads import (
    FLUSH_TANKS,
    FLUSH_VALVES,
    FLUSHING,
    WaterUnitCalculator,
    area_in_sqm,
    electrical_unit_load,
)
from domain.policy.snapshot import FactorKey
from models.enums import OCCUPANCY_BASIS, AreaUnit, FlushSystemType, ProjectType
from services.error_types import InvalidInventory, RateNotFound, UnsupportedOption

FLAT = FactorKey('RESIDENTIAL', 'FLAT', 'Residential Flat Load')
LIFT = FactorKey('LIFTS', 'PASSENGER', 'Passenger Lift')


def calculator(snapshot, project_type, sub_type, flush=FlushSystemType.valve):
    return WaterUnitCalculator(RateLookup(snapshot), project_type, sub_type, flush,
                               OCCUPANCY_BASIS[project_type])


class TestElectricalUnitLoad:
    """Test unit load and TCL for a single line"""

    def test_area_based_load(self, guideline_snapshot):
        """Test that area-based load is area × W/m² per unit, times count"""
        factor = FactorLookup(guideline_snapshot).factor(FLAT)

        load = electrical_unit_load('2BHK', factor, 10, 100.0)

        assert load.unit_load_w == pytest.approx(7500)
        assert load.connected_load_w == pytest.approx(75000)

    def test_equipment_based_load(self, guideline_snapshot):
        """Test that equipment load ignores area"""
        factor = FactorLookup(guideline_snapshot).factor(LIFT)

        load = electrical_unit_load('Lifts', factor, 4, None)

        assert load.connected_load_w == 60000

    @pytest.mark.parametrize("area", [None, 0.0])
    def test_area_factor_without_area(self, guideline_snapshot, area):
        """Test that an area-based factor with a missing or zero area is rejected"""
        factor = FactorLookup(guideline_snapshot).factor(FLAT)

        with pytest.raises(InvalidInventory):
            electrical_unit_load('2BHK', factor, 10, area)

    def test_sqft_conversion(self):
        """Test that square feet are normalised to m²"""
        assert area_in_sqm(SQFT_PER_SQM, AreaUnit.sqft) == pytest.approx(1.0)
        assert area_in_sqm(12.5, AreaUnit.sqm) == 12.5
        assert area_in_sqm(None, AreaUnit.sqft) is None


class TestFlushSelection:
    """Test the flushing rate chosen for each flush system"""

    def test_valve_prefers_flush_valve_rate(self, policy_snapshot):
        """Test that valve systems use flushValves where the policy has it"""
        calc = calculator(policy_snapshot, ProjectType.residential, 'luxury')

        assert calc.flushing_category() == FLUSH_VALVES
        assert calc.rates.flushing == 75

    def test_valve_falls_back_to_flushing(self, policy_snapshot):
        """Test that valve systems use the generic rate otherwise"""
        calc = calculator(policy_snapshot, ProjectType.residential, 'aspirational')

        assert calc.flushing_category() == FLUSHING
        assert calc.rates.flushing == 60

    def test_tank_rate(self, policy_snapshot):
        """Test that tank systems use flushTanks"""
        calc = calculator(policy_snapshot, ProjectType.residential, 'luxury', FlushSystemType.tank)

        assert calc.flushing_category() == FLUSH_TANKS
        assert calc.rates.flushing == 45

    def test_tank_unsupported(self, policy_snapshot):
        """Test that tank systems are rejected where the sub-type has no tank rate"""
        with pytest.raises(UnsupportedOption) as exc_info:
            calculator(policy_snapshot, ProjectType.residential, 'aspirational', FlushSystemType.tank)

        assert exc_info.value.details['sub_type'] == 'aspirational'

    def test_unknown_sub_type_aborts(self, policy_snapshot):
        """Test that rates are resolved up front and a miss aborts"""
        with pytest.raises(RateNotFound):
            calculator(policy_snapshot, ProjectType.office, 'unknown')


class TestOccupancy:
    """Test occupancy per project type"""

    def test_residential_per_unit(self, policy_snapshot):
        """Test that residential occupancy is count × occupants per unit"""
        calc = calculator(policy_snapshot, ProjectType.residential, 'luxury')

        demand = calc.unit_demand('4BHK', 10, 200.0)

        assert demand.occupants == 70
        assert demand.drinking_l == 70 * 165
        assert demand.flushing_l == 70 * 75

    def test_office_per_area(self, policy_snapshot):
        """Test that office occupancy is area / m² per person × peak factor"""
        calc = calculator(policy_snapshot, ProjectType.office, 'excelus')

        demand = calc.unit_demand('Floor', 1, 700.0)

        assert demand.occupants == pytest.approx(90)
        assert demand.visitors == 0

    def test_retail_visitors_are_area_over_visitor_sqm(self, policy_snapshot):
        """Test that visitors are area divided by m² per visitor, not multiplied"""
        calc = calculator(policy_snapshot, ProjectType.retail, 'experia')

        demand = calc.unit_demand('Shop', 10, 100.0)

        assert demand.area_sqm == 1000
        assert demand.occupants == pytest.approx(100)
        assert demand.visitors == pytest.approx(200)
        assert demand.drinking_l == pytest.approx(100 * 25 + 200 * 5)
        assert demand.flushing_l == pytest.approx(100 * 20 + 200 * 10)

    def test_multiplex_seats(self, policy_snapshot):
        """Test that multiplex occupancy is the seat count"""
        calc = calculator(policy_snapshot, ProjectType.multiplex, 'standard')

        demand = calc.unit_demand('Screen', 250, 0.0)

        assert demand.occupants == 250
        assert demand.total_l == 250 * (5 + 10)

    def test_unoffered_unit_type_has_zero_occupants(self, policy_snapshot):
        """Test that a zero occupancy factor yields zero, not an error"""
        calc = calculator(policy_snapshot, ProjectType.residential, 'luxury')

        assert calc.unit_demand('1BHK', 12, 50.0).occupants == 0

    def test_unknown_unit_type(self, policy_snapshot):
        """Test that a unit type without an occupancy factor raises"""
        calc = calculator(policy_snapshot, ProjectType.residential, 'luxury')

        with pytest.raises(RateNotFound):
            calc.unit_demand('Penthouse', 2, 400.0)

    def test_office_floor_without_area(self, policy_snapshot):
        """Test that an area-sized unit group needs an area"""
        calc = calculator(policy_snapshot, ProjectType.office, 'excelus')

        with pytest.raises(InvalidInventory):
            calc.unit_demand('Floor', 1, None)

    def test_seat_count_without_area(self, policy_snapshot):
        """Test that seat-based occupancy does not need an area"""
        calc = calculator(policy_snapshot, ProjectType.multiplex, 'standard')

        demand = calc.unit_demand('Screen', 250, None)

        assert demand.occupants == 250
        assert demand.area_sqm == 0
