"""
Water Demand Engine
Inventory + policy snapshot → occupancy and consumption per unit type →
building and project totals (including pool, landscape and cooling tower
demand) → storage sizing and the overhead tank / underground reservoir
split → WaterDemandReport.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from domain.calculations.demand_aggregation import exact_sum, report_ceil
from domain.calculations.rate_lookup import RateLookup
from domain.calculations.sizing import TankDays, size_storage
from domain.calculations.unit_loads import WaterUnitCalculator, WaterUnitDemand, area_in_sqm
from domain.policy.snapshot import PolicySnapshot
from models.enums import OCCUPANCY_BASIS, AmenityKind, PolicySource
from models.schemas import (
    AmenityLine,
    Building,
    Inventory,
    PolicyIdentity,
    StorageSizing,
    TreatmentRecommendation,
    WaterDemandReport,
    WaterLineItem,
    WaterOptions,
    WaterSubtotal,
    WaterTotals,
)

logger = logging.getLogger(__name__)

POOL_EVAPORATION_RATE = 'pool_evaporation_rate'        # L/m²/day
LANDSCAPE_WATER_RATE = 'landscape_water_rate'          # L/m²/day
COOLING_TOWER_RATE = 'cooling_tower_rate'              # L/hr/TR
STORAGE_BUFFER_PERCENTAGE = 'storage_buffer_percentage'
OHT_DOMESTIC_DAYS = 'oht_domestic_days'
OHT_FLUSHING_DAYS = 'oht_flushing_days'
UGR_DOMESTIC_DAYS = 'ugr_domestic_days'
UGR_FLUSHING_DAYS = 'ugr_flushing_days'

HOURS_PER_DAY = 24

# Above this daily demand flushing water needs tertiary treatment
TERTIARY_TREATMENT_THRESHOLD_L = 50000

LIMITED_HUMAN_TOUCH = (AmenityKind.pool, AmenityKind.landscape)


def policy_identity(snapshot: PolicySnapshot) -> PolicyIdentity:
    return PolicyIdentity(
        source=PolicySource.policy_version,
        label=snapshot.label,
        policy_version_id=snapshot.policy_version_id,
        policy_number=snapshot.policy_number,
        revision_number=snapshot.revision_number,
        status=snapshot.status,
        guideline=snapshot.electrical_guideline,
    )


@dataclass(frozen=True)
class Amenity:
    building: str
    kind: AmenityKind
    quantity: float
    rate: float
    demand_l: float


@dataclass(frozen=True)
class BuildingWater:
    name: str
    units: List[WaterUnitDemand]
    amenities: List[Amenity]

    def occupant_sum(self, attr: str) -> float:
        return exact_sum(getattr(u, attr) for u in self.units)

    def amenity_sum(self, kinds) -> float:
        return exact_sum(a.demand_l for a in self.amenities if a.kind in kinds)

    def tank_l(self, days: TankDays) -> float:
        return days.capacity_l(self.occupant_sum('drinking_l'), self.occupant_sum('flushing_l'))


class WaterDemandEngine:
    """
    Fixed water pipeline over one policy snapshot.

    All rates and any parameter an amenity needs are resolved before the
    report is built; a miss aborts the whole run.
    """

    def __init__(self, snapshot: PolicySnapshot, identity: Optional[PolicyIdentity] = None):
        self.snapshot = snapshot
        self.identity = identity or policy_identity(snapshot)
        self.lookup = RateLookup(snapshot)

    def _amenities(self, building: Building, inventory: Inventory) -> List[Amenity]:
        """Parameters are only required when the building actually has the amenity."""
        amenities = []
        pool = area_in_sqm(building.pool_area, inventory.area_unit)
        if pool > 0:
            rate = self.lookup.parameter(POOL_EVAPORATION_RATE)
            amenities.append(Amenity(building.name, AmenityKind.pool, pool, rate, pool * rate))

        landscape = area_in_sqm(building.landscape_area, inventory.area_unit)
        if landscape > 0:
            rate = self.lookup.parameter(LANDSCAPE_WATER_RATE)
            amenities.append(Amenity(building.name, AmenityKind.landscape, landscape, rate, landscape * rate))

        if building.cooling_tower_tr > 0:
            rate = self.lookup.parameter(COOLING_TOWER_RATE)
            amenities.append(Amenity(
                building.name,
                AmenityKind.cooling_tower,
                building.cooling_tower_tr,
                rate,
                building.cooling_tower_tr * rate * HOURS_PER_DAY,
            ))
        return amenities

    def calculate(self, inventory: Inventory, options: WaterOptions) -> WaterDemandReport:
        calculator = WaterUnitCalculator(
            self.lookup,
            inventory.project_type,
            inventory.sub_type,
            options.flush_system_type,
            OCCUPANCY_BASIS[inventory.project_type],
        )
        buffer_percentage = self.lookup.parameter(STORAGE_BUFFER_PERCENTAGE)
        oht = TankDays(self.lookup.parameter(OHT_DOMESTIC_DAYS), self.lookup.parameter(OHT_FLUSHING_DAYS))
        ugr = TankDays(self.lookup.parameter(UGR_DOMESTIC_DAYS), self.lookup.parameter(UGR_FLUSHING_DAYS))

        buildings = []
        for building in inventory.buildings:
            units = [
                calculator.unit_demand(
                    group.unit_type,
                    group.count,
                    area_in_sqm(group.area, inventory.area_unit),
                )
                for group in building.unit_groups
            ]
            buildings.append(BuildingWater(building.name, units, self._amenities(building, inventory)))

        all_units = [u for b in buildings for u in b.units]
        all_amenities = [a for b in buildings for a in b.amenities]

        occupants = exact_sum(u.occupants for u in all_units)
        drinking = exact_sum(u.drinking_l for u in all_units)
        flushing = exact_sum(u.flushing_l for u in all_units)
        limited = exact_sum(a.demand_l for a in all_amenities if a.kind in LIMITED_HUMAN_TOUCH)
        mechanical = exact_sum(a.demand_l for a in all_amenities if a.kind == AmenityKind.cooling_tower)
        total = exact_sum([drinking, flushing, limited, mechanical])

        storage = size_storage(total, buffer_percentage, options.tank_depth_m)

        totals = WaterTotals(
            occupants=report_ceil(occupants),
            visitors=report_ceil(exact_sum(u.visitors for u in all_units)),
            drinking_l=report_ceil(drinking),
            flushing_l=report_ceil(flushing),
            limited_human_touch_l=report_ceil(limited),
            mechanical_l=report_ceil(mechanical),
            total_l=report_ceil(total),
            per_capita_l=report_ceil(total / occupants) if occupants > 0 else 0,
        )

        warnings = []
        if occupants == 0 and all_units:
            warnings.append("Inventory resolves to zero occupants")

        return WaterDemandReport(
            project_id=inventory.project_id,
            project_type=inventory.project_type,
            sub_type=inventory.sub_type,
            category=inventory.category,
            policy=self.identity,
            warnings=warnings,
            flush_system_type=options.flush_system_type,
            buildings=[self._subtotal(b, oht, ugr) for b in buildings],
            amenities=[self._amenity_line(a) for a in all_amenities],
            totals=totals,
            storage=StorageSizing(
                daily_demand_l=storage.daily_demand_l,
                buffer_percentage=storage.buffer_percentage,
                capacity_l=storage.capacity_l,
                volume_m3=storage.volume_m3,
                depth_m=storage.depth_m,
                footprint_sqm=storage.footprint_sqm,
                side_m=storage.side_m,
                ugr_capacity_l=report_ceil(exact_sum(b.tank_l(ugr) for b in buildings)),
            ),
            treatment=recommend_treatment(totals),
        )

    # -- reporting ---------------------------------------------------------

    @staticmethod
    def _line_item(unit: WaterUnitDemand) -> WaterLineItem:
        return WaterLineItem(
            unit_type=unit.unit_type,
            count=unit.count,
            area_sqm=unit.area_sqm,
            occupants=report_ceil(unit.occupants),
            visitors=report_ceil(unit.visitors),
            drinking_rate=unit.rates.drinking,
            flushing_rate=unit.rates.flushing,
            drinking_l=report_ceil(unit.drinking_l),
            flushing_l=report_ceil(unit.flushing_l),
            total_l=report_ceil(unit.total_l),
        )

    def _subtotal(self, building: BuildingWater, oht: TankDays, ugr: TankDays) -> WaterSubtotal:
        drinking = building.occupant_sum('drinking_l')
        flushing = building.occupant_sum('flushing_l')
        limited = building.amenity_sum(LIMITED_HUMAN_TOUCH)
        mechanical = building.amenity_sum((AmenityKind.cooling_tower,))
        return WaterSubtotal(
            name=building.name,
            lines=[self._line_item(u) for u in building.units],
            occupants=report_ceil(building.occupant_sum('occupants')),
            visitors=report_ceil(building.occupant_sum('visitors')),
            drinking_l=report_ceil(drinking),
            flushing_l=report_ceil(flushing),
            limited_human_touch_l=report_ceil(limited),
            mechanical_l=report_ceil(mechanical),
            total_l=report_ceil(exact_sum([drinking, flushing, limited, mechanical])),
            oht_capacity_l=report_ceil(building.tank_l(oht)),
            ugr_capacity_l=report_ceil(building.tank_l(ugr)),
        )

    @staticmethod
    def _amenity_line(amenity: Amenity) -> AmenityLine:
        return AmenityLine(
            building=amenity.building,
            kind=amenity.kind,
            quantity=amenity.quantity,
            rate=amenity.rate,
            demand_l=report_ceil(amenity.demand_l),
        )


def recommend_treatment(totals: WaterTotals) -> List[TreatmentRecommendation]:
    """Treatment stream per demand component, sized on the reported figures."""
    recommendations = []

    if totals.drinking_l > 0:
        recommendations.append(TreatmentRecommendation(
            stream='Drinking Water',
            method='RO + UV Treatment',
            capacity_l=totals.drinking_l,
            usage='Direct consumption, kitchen, basin, shower',
        ))

    if totals.flushing_l > 0:
        if totals.total_l > TERTIARY_TREATMENT_THRESHOLD_L:
            method, usage = 'STP with Tertiary Treatment (MBBR/MBR)', 'Toilets, urinals'
        else:
            method, usage = 'Conventional STP/SAFF', 'Toilets, urinals, construction'
        recommendations.append(TreatmentRecommendation(
            stream='Flushing Water', method=method, capacity_l=totals.flushing_l, usage=usage,
        ))

    if totals.limited_human_touch_l > 0:
        recommendations.append(TreatmentRecommendation(
            stream='Limited Human Touch',
            method='Softener + UV (if needed)',
            capacity_l=totals.limited_human_touch_l,
            usage='Pool makeup, landscape, fountains',
        ))

    if totals.mechanical_l > 0:
        recommendations.append(TreatmentRecommendation(
            stream='Mechanical Cooling',
            method='Softener + Chemical Treatment',
            capacity_l=totals.mechanical_l,
            usage='Cooling towers',
        ))

    return recommendations
