"""
Electrical Load Engine
Inventory + guideline snapshot → unit loads → demand aggregation → transformer
sizing → ElectricalDemandReport.
"""

import logging
from typing import Dict, List, Optional, Tuple

from domain.calculations.demand_aggregation import (
    DemandGroup,
    DemandLine,
    DemandTotals,
    get_demand_aggregator,
    report_ceil,
)
from domain.calculations.rate_lookup import FactorLookup
from domain.calculations.sizing import max_demand_kva, select_transformer
from domain.calculations.unit_loads import UnitLoad, area_in_sqm, electrical_unit_load
from domain.policy.snapshot import FactorKey, GuidelineSnapshot
from models.enums import PolicySource, ProjectType
from models.schemas import (
    ElectricalDemandReport,
    ElectricalLineItem,
    ElectricalOptions,
    ElectricalSubtotal,
    ElectricalTotals,
    FactorRef,
    Inventory,
    PolicyIdentity,
    TransformerSelection,
)

logger = logging.getLogger(__name__)

PROJECT_EQUIPMENT = "Project equipment"

# Factor used for a unit group that does not name one
DEFAULT_UNIT_FACTORS: Dict[ProjectType, FactorRef] = {
    ProjectType.residential: FactorRef(category="RESIDENTIAL", sub_category="FLAT",
                                       description="Residential Flat Load"),
    ProjectType.office: FactorRef(category="COMMERCIAL", sub_category="OFFICE",
                                  description="Office Space"),
    ProjectType.retail: FactorRef(category="COMMERCIAL", sub_category="RETAIL",
                                  description="Retail Space"),
    ProjectType.multiplex: FactorRef(category="COMMERCIAL", sub_category="MULTIPLEX",
                                     description="Multiplex Auditorium"),
    ProjectType.school: FactorRef(category="INSTITUTIONAL", sub_category="SCHOOL",
                                  description="School Building"),
}


def guideline_identity(snapshot: GuidelineSnapshot) -> PolicyIdentity:
    """Identity of a report computed straight from a guideline."""
    return PolicyIdentity(
        source=PolicySource.guideline,
        label=snapshot.guideline,
        guideline=snapshot.guideline,
    )


class ElectricalLoadEngine:
    """
    Fixed electrical pipeline over one guideline snapshot.

    Every factor is resolved before anything is aggregated, so a RateNotFound
    aborts the run without producing any partial figures.
    """

    def __init__(self, snapshot: GuidelineSnapshot, identity: Optional[PolicyIdentity] = None):
        self.snapshot = snapshot
        self.identity = identity or guideline_identity(snapshot)
        self.lookup = FactorLookup(snapshot)
        self.aggregator = get_demand_aggregator()

    def _load(self, ref: FactorRef, description: str, count: int, area_sqm: Optional[float]) -> UnitLoad:
        factor = self.lookup.factor(FactorKey(ref.category, ref.sub_category, ref.description))
        return electrical_unit_load(description, factor, count, area_sqm)

    def _building_loads(self, inventory: Inventory, building) -> List[UnitLoad]:
        unit = inventory.area_unit
        default_ref = DEFAULT_UNIT_FACTORS[inventory.project_type]
        loads = []

        for group in building.unit_groups:
            ref = group.factor or default_ref
            area = area_in_sqm(group.area, unit)
            loads.append(self._load(ref, group.unit_type, group.count, area))

        for common in building.common_areas:
            loads.append(self._load(
                common.factor,
                common.description or common.factor.description,
                common.count,
                area_in_sqm(common.area, unit),
            ))

        for item in building.equipment:
            loads.append(self._load(
                item.factor,
                item.description or item.factor.description,
                item.count,
                area_in_sqm(item.area, unit),
            ))
        return loads

    def _equipment_loads(self, inventory: Inventory) -> List[UnitLoad]:
        return [
            self._load(
                item.factor,
                item.description or item.factor.description,
                item.count,
                area_in_sqm(item.area, inventory.area_unit),
            )
            for item in inventory.equipment
        ]

    def calculate(self, inventory: Inventory, options: ElectricalOptions) -> ElectricalDemandReport:
        # Unit loads for the whole project first
        building_loads: List[Tuple[str, List[UnitLoad]]] = [
            (building.name, self._building_loads(inventory, building))
            for building in inventory.buildings
        ]
        equipment_loads = self._equipment_loads(inventory)

        # Aggregation
        groups = [self.aggregator.group(name, loads) for name, loads in building_loads]
        equipment_group = self.aggregator.group(PROJECT_EQUIPMENT, equipment_loads)
        totals = self.aggregator.project_totals(groups + [equipment_group])

        # Sizing
        kva = max_demand_kva(totals.max_demand_w, options.power_factor)
        choice = select_transformer(
            kva,
            self.snapshot.transformer_ratings,
            project_type=inventory.project_type.value,
            region=options.region,
        )

        warnings = [
            f"Building '{building.name}' has no electrical loads"
            for building, (_, loads) in zip(inventory.buildings, building_loads)
            if not loads
        ]

        return ElectricalDemandReport(
            project_id=inventory.project_id,
            project_type=inventory.project_type,
            sub_type=inventory.sub_type,
            category=inventory.category,
            policy=self.identity,
            warnings=warnings,
            buildings=[self._subtotal(group) for group in groups],
            project_equipment=self._subtotal(equipment_group),
            totals=self._totals(totals, options.power_factor, kva),
            transformer=TransformerSelection(
                required_kva=choice.required_kva,
                rating_kva=choice.rating_kva,
                candidates_kva=choice.candidates_kva,
            ),
        )

    # -- reporting: the only place figures are rounded --------------------

    @staticmethod
    def _line_item(line: DemandLine) -> ElectricalLineItem:
        load = line.load
        factor = load.factor
        return ElectricalLineItem(
            description=load.description,
            factor=FactorRef(
                category=factor.key.category,
                sub_category=factor.key.sub_category,
                description=factor.key.description,
            ),
            count=load.count,
            area_sqm=load.area_sqm,
            watt_per_sqm=factor.watt_per_sqm,
            watt_per_unit=factor.watt_per_unit,
            mdf=factor.mdf,
            edf=factor.edf,
            fdf=factor.fdf,
            unit_load_w=report_ceil(load.unit_load_w),
            connected_load_w=report_ceil(line.connected_load_w),
            max_demand_w=report_ceil(line.max_demand_w),
            essential_demand_w=report_ceil(line.essential_demand_w),
            fire_demand_w=report_ceil(line.fire_demand_w),
            notes=factor.notes,
        )

    def _subtotal(self, group: DemandGroup) -> ElectricalSubtotal:
        return ElectricalSubtotal(
            name=group.name,
            lines=[self._line_item(line) for line in group.lines],
            connected_load_w=report_ceil(group.totals.connected_load_w),
            max_demand_w=report_ceil(group.totals.max_demand_w),
            essential_demand_w=report_ceil(group.totals.essential_demand_w),
            fire_demand_w=report_ceil(group.totals.fire_demand_w),
        )

    @staticmethod
    def _totals(totals: DemandTotals, power_factor: float, kva: float) -> ElectricalTotals:
        return ElectricalTotals(
            connected_load_w=report_ceil(totals.connected_load_w),
            max_demand_w=report_ceil(totals.max_demand_w),
            essential_demand_w=report_ceil(totals.essential_demand_w),
            fire_demand_w=report_ceil(totals.fire_demand_w),
            power_factor=power_factor,
            max_demand_kva=report_ceil(kva),
        )
