"""
Tests for the electrical load engine end to end over a guideline snapshot
"""

import math
import dataclasses
import pytest

from core.config import SQFT_PER_SQM
from domain.calculations.electrical_load import PROJECT_EQUIPMENT, ElectricalLoadEngine
from domain.policy.snapshot import FactorKey
from models.enums import PolicySource
from models.schemas import ElectricalOptions, Inventory
from services.error_types import InvalidInventory, NoSuitableRating, RateNotFound
from services.policy_seed import STANDARD_TRANSFORMER_RATINGS

from conftest import make_guideline_snapshot

FLAT_W_PER_SQM = 75
FLAT_MDF = 0.6
FLAT = FactorKey('RESIDENTIAL', 'FLAT', 'Residential Flat Load')


def inventory(buildings, equipment=None, area_unit='sqm', project_type='residential', sub_type='luxury'):
    return Inventory.model_validate({
        'project_id': 'P-TEST',
        'project_type': project_type,
        'sub_type': sub_type,
        'area_unit': area_unit,
        'buildings': buildings,
        'equipment': equipment or [],
    })


class TestGold2:
    """Test the two-tower GOLD 2 luxury project"""

    @pytest.fixture
    def report(self, guideline_snapshot, gold2_inventory):
        return ElectricalLoadEngine(guideline_snapshot).calculate(gold2_inventory, ElectricalOptions())

    def test_connected_load(self, report):
        """Test TCL against area × W/m² × count for both towers"""
        tower_w = FLAT_W_PER_SQM * (950 / SQFT_PER_SQM * 76 + 1350 / SQFT_PER_SQM * 38)

        assert report.totals.connected_load_w == math.ceil(round(2 * tower_w, 9))
        assert [b.name for b in report.buildings] == ['T1', 'T2']
        assert report.buildings[0].connected_load_w == report.buildings[1].connected_load_w

    def test_max_demand_applies_mdf(self, report):
        """Test that MD is TCL × the flat MDF and never exceeds TCL"""
        tower_w = FLAT_W_PER_SQM * (950 / SQFT_PER_SQM * 76 + 1350 / SQFT_PER_SQM * 38)

        assert report.totals.max_demand_w == math.ceil(round(2 * tower_w * FLAT_MDF, 9))
        assert report.totals.max_demand_w <= report.totals.connected_load_w
        for building in report.buildings:
            assert building.max_demand_w <= building.connected_load_w

    def test_transformer(self, report):
        """Test that the smallest standard rating covering the MD kVA is chosen"""
        transformer = report.transformer

        assert report.totals.max_demand_kva == 1148
        assert transformer.required_kva == 1148
        assert transformer.rating_kva == 1250
        assert transformer.rating_kva >= report.totals.max_demand_kva
        assert not [r for r in transformer.candidates_kva if transformer.required_kva <= r < transformer.rating_kva]

    def test_identity(self, report):
        """Test that the report names the guideline it was computed from"""
        assert report.policy.source == PolicySource.guideline
        assert report.policy.guideline == "MSEDCL 2016"
        assert report.policy.status is None
        assert report.is_persistable

    def test_line_items(self, report):
        """Test per-unit-type lines inside each tower"""
        lines = report.buildings[0].lines

        assert [l.description for l in lines] == ['2BHK', '3BHK']
        assert lines[0].count == 76
        assert lines[0].watt_per_sqm == FLAT_W_PER_SQM
        assert lines[0].area_sqm == pytest.approx(950 / SQFT_PER_SQM)
        assert lines[0].mdf == FLAT_MDF
        assert lines[0].notes is None

    def test_factor_notes_reach_line_items(self, gold2_inventory):
        """Test that guideline notes on a factor are shown on its lines"""
        seeded = make_guideline_snapshot()
        flat = seeded.factors[FLAT]
        factors = [f for f in seeded.factors.values() if f.key != FLAT]
        factors.append(dataclasses.replace(flat, notes='Carpet area basis'))

        report = ElectricalLoadEngine(make_guideline_snapshot(factors=factors)).calculate(
            gold2_inventory, ElectricalOptions())

        assert {l.notes for b in report.buildings for l in b.lines} == {'Carpet area basis'}

    def test_sqft_and_sqm_agree(self, guideline_snapshot, gold2_inventory):
        """Test that the same areas in m² give the same report figures"""
        buildings = [
            {
                'name': b.name,
                'unit_groups': [
                    {'unit_type': g.unit_type, 'area': g.area / SQFT_PER_SQM, 'count': g.count}
                    for g in b.unit_groups
                ],
            }
            for b in gold2_inventory.buildings
        ]
        engine = ElectricalLoadEngine(guideline_snapshot)

        in_sqm = engine.calculate(inventory(buildings), ElectricalOptions())
        in_sqft = engine.calculate(gold2_inventory, ElectricalOptions())

        assert in_sqm.totals == in_sqft.totals

    def test_deterministic(self, guideline_snapshot, gold2_inventory):
        """Test that repeated runs give identical reports"""
        engine = ElectricalLoadEngine(guideline_snapshot)

        first = engine.calculate(gold2_inventory, ElectricalOptions())
        second = engine.calculate(gold2_inventory, ElectricalOptions())

        assert first.model_dump() == second.model_dump()


class TestMixedLoads:
    """Test common areas, building equipment and project equipment"""

    @pytest.fixture
    def mixed(self):
        return inventory(
            buildings=[{
                'name': 'Tower A',
                'unit_groups': [{'unit_type': '3BHK', 'area': 120, 'count': 20}],
                'common_areas': [{
                    'factor': {'category': 'LIGHTING', 'sub_category': 'LOBBY',
                               'description': 'GF Entrance Lobby'},
                    'area': 100,
                }],
                'equipment': [{
                    'factor': {'category': 'LIFTS', 'sub_category': 'PASSENGER',
                               'description': 'Passenger Lift'},
                    'count': 4,
                }],
            }],
            equipment=[
                {'factor': {'category': 'FIRE', 'sub_category': 'HYDRANT', 'description': 'Main Hydrant Pump'},
                 'count': 1},
                {'factor': {'category': 'FIRE', 'sub_category': 'JOCKEY', 'description': 'Jockey Pump'},
                 'count': 1},
            ],
        )

    def test_building_lines(self, guideline_snapshot, mixed):
        """Test flats, lobby and lifts as separate lines with their own factors"""
        report = ElectricalLoadEngine(guideline_snapshot).calculate(mixed, ElectricalOptions())
        lines = {l.description: l for l in report.buildings[0].lines}

        assert lines['3BHK'].connected_load_w == 120 * 75 * 20
        assert lines['GF Entrance Lobby'].connected_load_w == 3000
        assert lines['Passenger Lift'].connected_load_w == 60000
        assert lines['Passenger Lift'].max_demand_w == 36000
        assert lines['Passenger Lift'].essential_demand_w == 36000

    def test_project_equipment(self, guideline_snapshot, mixed):
        """Test that fire pumps sit at project level with fire demand only"""
        report = ElectricalLoadEngine(guideline_snapshot).calculate(mixed, ElectricalOptions())

        equipment = report.project_equipment
        assert equipment.name == PROJECT_EQUIPMENT
        assert equipment.connected_load_w == 112000 + 9330
        assert equipment.max_demand_w == 0
        assert equipment.fire_demand_w == 112000 + 9330

    def test_project_totals_include_equipment(self, guideline_snapshot, mixed):
        """Test that project TCL covers buildings and project equipment"""
        report = ElectricalLoadEngine(guideline_snapshot).calculate(mixed, ElectricalOptions())

        assert report.totals.connected_load_w == 180000 + 3000 + 60000 + 112000 + 9330
        assert report.totals.fire_demand_w == 1500 + 112000 + 9330

    def test_power_factor(self, guideline_snapshot, mixed):
        """Test that a lower power factor raises the kVA"""
        engine = ElectricalLoadEngine(guideline_snapshot)

        unity = engine.calculate(mixed, ElectricalOptions(power_factor=1.0))
        lagging = engine.calculate(mixed, ElectricalOptions(power_factor=0.8))

        assert lagging.totals.max_demand_kva > unity.totals.max_demand_kva
        assert unity.totals.max_demand_kva == math.ceil(round(unity.totals.max_demand_w / 1000, 9))


class TestFailures:
    """Test that failures abort without a partial report"""

    def test_unknown_factor_aborts(self, guideline_snapshot):
        """Test that a missing factor raises RateNotFound"""
        inv = inventory([{
            'name': 'T1',
            'unit_groups': [{'unit_type': 'Shop', 'area': 40, 'count': 3,
                             'factor': {'category': 'COMMERCIAL', 'sub_category': 'KIOSK',
                                        'description': 'Kiosk'}}],
        }])

        with pytest.raises(RateNotFound) as exc_info:
            ElectricalLoadEngine(guideline_snapshot).calculate(inv, ElectricalOptions())

        assert exc_info.value.sub_type == 'KIOSK'

    @pytest.mark.parametrize("group", [
        {'unit_type': '2BHK', 'count': 76},
        {'unit_type': '2BHK', 'area': 0, 'count': 76},
    ])
    def test_unit_group_without_area(self, guideline_snapshot, group):
        """Test that a flat with no area is rejected instead of reported as zero load"""
        inv = inventory([{'name': 'T1', 'unit_groups': [group]}])

        with pytest.raises(InvalidInventory) as exc_info:
            ElectricalLoadEngine(guideline_snapshot).calculate(inv, ElectricalOptions())

        assert exc_info.value.details['description'] == '2BHK'

    def test_demand_beyond_largest_rating(self, guideline_snapshot):
        """Test that demand above the largest transformer raises NoSuitableRating"""
        inv = inventory([{'name': 'Mega', 'unit_groups': [{'unit_type': 'Flat', 'area': 1000, 'count': 100}]}])

        with pytest.raises(NoSuitableRating) as exc_info:
            ElectricalLoadEngine(guideline_snapshot).calculate(inv, ElectricalOptions())

        assert exc_info.value.largest_kva == max(STANDARD_TRANSFORMER_RATINGS)

    def test_empty_building_warns(self, guideline_snapshot):
        """Test that a building without loads is reported with a warning"""
        inv = inventory([
            {'name': 'T1', 'unit_groups': [{'unit_type': '2BHK', 'area': 80, 'count': 10}]},
            {'name': 'Podium'},
        ])

        report = ElectricalLoadEngine(guideline_snapshot).calculate(inv, ElectricalOptions())

        assert report.warnings == ["Building 'Podium' has no electrical loads"]
        assert report.buildings[1].connected_load_w == 0
