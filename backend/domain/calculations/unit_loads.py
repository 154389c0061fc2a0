"""
Per-unit-type loads, occupancy and consumption.

Everything here works on a single unit group at a time and knows nothing
about buildings or projects; roll-up lives in demand_aggregation.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from core.config import SQFT_PER_SQM
from domain.calculations.rate_lookup import RateLookup, ValidatedFactor
from domain.policy.snapshot import RateKey
from models.enums import AreaUnit, FlushSystemType, OccupancyBasis, ProjectType, RateKind
from services.error_types import InvalidInventory, UnsupportedOption

logger = logging.getLogger(__name__)


# Consumption categories stored per project type
DRINKING_CATEGORY = {
    ProjectType.residential: 'drinking',
    ProjectType.office: 'drinking',
    ProjectType.retail: 'drinking',
    ProjectType.multiplex: 'perSeat',
    ProjectType.school: 'perHead',
}
FLUSHING = 'flushing'
FLUSH_VALVES = 'flushValves'
FLUSH_TANKS = 'flushTanks'
VISITOR_DRINKING = 'visitor'
VISITOR_FLUSHING = 'visitorFlushing'

# Occupancy factor categories for area-based project types
SQM_PER_PERSON = 'sqm_per_person'
PEAK_FACTOR = 'peak_factor'
SQM_PER_FULLTIME = 'sqm_per_fulltime'
VISITOR_SQM = 'visitor_sqm'


def area_in_sqm(area: Optional[float], unit: AreaUnit) -> Optional[float]:
    """Normalise an inventory area to m²."""
    if area is None:
        return None
    if unit == AreaUnit.sqft:
        return area / SQFT_PER_SQM
    return area


@dataclass(frozen=True)
class UnitLoad:
    """Connected load of one electrical line before any demand factor."""
    description: str
    factor: ValidatedFactor
    count: int
    area_sqm: Optional[float]
    unit_load_w: float
    connected_load_w: float


def electrical_unit_load(description: str, factor: ValidatedFactor, count: int,
                         area_sqm: Optional[float]) -> UnitLoad:
    """
    Compute the unit load and TCL for one line.

    Area-based factors give ``area × W/m²`` per unit, equipment-based factors
    a fixed W per unit. TCL is unit load × count.

    Raises:
        InvalidInventory: an area-based factor meets a missing or zero area
    """
    if factor.is_area_based:
        if not area_sqm:
            raise InvalidInventory(
                f"'{description}' uses an area-based factor but has no area",
                {'description': description, 'factor': factor.key.describe()},
            )
        unit_load = area_sqm * factor.watt_per_sqm
    else:
        unit_load = factor.watt_per_unit

    return UnitLoad(
        description=description,
        factor=factor,
        count=count,
        area_sqm=area_sqm,
        unit_load_w=unit_load,
        connected_load_w=unit_load * count,
    )


@dataclass(frozen=True)
class OccupantRates:
    """Per-person rates for one project type / sub-type / flush selection."""
    drinking: float
    flushing: float
    visitor_drinking: float = 0.0
    visitor_flushing: float = 0.0


@dataclass(frozen=True)
class WaterUnitDemand:
    unit_type: str
    count: int
    area_sqm: float
    occupants: float
    visitors: float
    rates: OccupantRates
    drinking_l: float
    flushing_l: float

    @property
    def total_l(self) -> float:
        return self.drinking_l + self.flushing_l


class WaterUnitCalculator:
    """
    Occupancy and per-occupant consumption for one project type and sub-type.

    Rates are resolved once at construction, so a missing rate aborts before
    any line is computed.
    """

    def __init__(self, lookup: RateLookup, project_type: ProjectType, sub_type: str,
                 flush_system_type: FlushSystemType, basis: OccupancyBasis):
        self.lookup = lookup
        self.project_type = project_type
        self.sub_type = sub_type
        self.flush_system_type = flush_system_type
        self.basis = basis
        self.rates = self._resolve_rates()
        self._area_factors = self._resolve_area_factors()

    def _key(self, kind: RateKind, category: str) -> RateKey:
        return RateKey(kind, self.project_type, self.sub_type, category)

    def _consumption(self, category: str) -> float:
        return self.lookup.rate_for(self._key(RateKind.consumption, category))

    def flushing_category(self) -> str:
        """
        Pick the flushing rate for the selected system.

        Valve systems use a dedicated flushValves rate when the policy has
        one, otherwise the generic flushing rate. Tank systems are only
        offered where the policy defines a flushTanks rate.
        """
        if self.flush_system_type == FlushSystemType.tank:
            if not self.lookup.has_rate(self._key(RateKind.consumption, FLUSH_TANKS)):
                raise UnsupportedOption(
                    f"Flush tanks are not offered for {self.project_type.value}/{self.sub_type}",
                    {
                        'project_type': self.project_type.value,
                        'sub_type': self.sub_type,
                        'flush_system_type': self.flush_system_type.value,
                        'source': self.lookup.snapshot.label,
                    },
                )
            return FLUSH_TANKS
        if self.lookup.has_rate(self._key(RateKind.consumption, FLUSH_VALVES)):
            return FLUSH_VALVES
        return FLUSHING

    def _resolve_rates(self) -> OccupantRates:
        drinking = self._consumption(DRINKING_CATEGORY[self.project_type])
        flushing = self._consumption(self.flushing_category())
        if self.project_type == ProjectType.retail:
            return OccupantRates(
                drinking=drinking,
                flushing=flushing,
                visitor_drinking=self._consumption(VISITOR_DRINKING),
                visitor_flushing=self._consumption(VISITOR_FLUSHING),
            )
        return OccupantRates(drinking=drinking, flushing=flushing)

    def _resolve_area_factors(self) -> dict:
        factors = {}
        occupancy = RateKind.occupancy
        if self.project_type == ProjectType.office:
            factors[SQM_PER_PERSON] = self.lookup.rate_for(self._key(occupancy, SQM_PER_PERSON), positive=True)
            factors[PEAK_FACTOR] = self.lookup.rate_for(self._key(occupancy, PEAK_FACTOR))
        elif self.project_type == ProjectType.retail:
            factors[SQM_PER_FULLTIME] = self.lookup.rate_for(self._key(occupancy, SQM_PER_FULLTIME), positive=True)
            factors[VISITOR_SQM] = self.lookup.rate_for(self._key(occupancy, VISITOR_SQM), positive=True)
        return factors

    def occupants(self, unit_type: str, count: int, area_sqm: float) -> float:
        """Occupants of one unit group, unrounded."""
        if self.basis == OccupancyBasis.per_unit:
            per_unit = self.lookup.rate_for(self._key(RateKind.occupancy, unit_type))
            return count * per_unit
        if self.basis == OccupancyBasis.per_area:
            if self.project_type == ProjectType.office:
                return area_sqm / self._area_factors[SQM_PER_PERSON] * self._area_factors[PEAK_FACTOR]
            return area_sqm / self._area_factors[SQM_PER_FULLTIME]
        # Seats and heads are given directly as the count
        return float(count)

    def visitors(self, area_sqm: float) -> float:
        """Visitor count is area divided by the area each visitor takes up."""
        if self.project_type != ProjectType.retail:
            return 0.0
        return area_sqm / self._area_factors[VISITOR_SQM]

    def unit_demand(self, unit_type: str, count: int, unit_area_sqm: Optional[float]) -> WaterUnitDemand:
        if self.basis == OccupancyBasis.per_area and not unit_area_sqm:
            raise InvalidInventory(
                f"'{unit_type}' is sized by floor area but has no area",
                {'unit_type': unit_type, 'project_type': self.project_type.value},
            )
        # Unit and seat counts do not depend on area
        area_sqm = (unit_area_sqm or 0.0) * count
        occupants = self.occupants(unit_type, count, area_sqm)
        visitors = self.visitors(area_sqm)
        rates = self.rates
        return WaterUnitDemand(
            unit_type=unit_type,
            count=count,
            area_sqm=area_sqm,
            occupants=occupants,
            visitors=visitors,
            rates=rates,
            drinking_l=occupants * rates.drinking + visitors * rates.visitor_drinking,
            flushing_l=occupants * rates.flushing + visitors * rates.visitor_flushing,
        )
