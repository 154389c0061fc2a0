"""
Reference seed data: the MEP-21 / Policy 25 water policy and the MSEDCL 2016
electrical guideline with the IS/IEC transformer series.
"""

import logging
from typing import List, Optional

from models.enums import RateKind
from services.policy_store import (
    FactorRow,
    ParameterRow,
    PolicyVersionInfo,
    RateRow,
    SQLPolicyStore,
)

logger = logging.getLogger(__name__)

MSEDCL_2016 = "MSEDCL 2016"

PER_OCCUPANT = 'L/occupant/day'

CONSUMPTION_RATES: List[RateRow] = [
    # Residential (MEP-21 page 2)
    RateRow('residential', 'luxury', 'drinking', 165, PER_OCCUPANT, 'Drinking, kitchen, bathing, washing'),
    RateRow('residential', 'luxury', 'flushValves', 75, PER_OCCUPANT, 'For toilets with flush valves'),
    RateRow('residential', 'luxury', 'flushTanks', 45, PER_OCCUPANT, 'For toilets with flush tanks (3-6L capacity)'),
    RateRow('residential', 'aspirational', 'drinking', 110, PER_OCCUPANT),
    RateRow('residential', 'aspirational', 'flushing', 60, PER_OCCUPANT),
    RateRow('residential', 'casa', 'drinking', 110, PER_OCCUPANT),
    RateRow('residential', 'casa', 'flushing', 60, PER_OCCUPANT),
    # Office
    RateRow('office', 'excelus', 'drinking', 20, PER_OCCUPANT),
    RateRow('office', 'excelus', 'flushing', 25, PER_OCCUPANT),
    RateRow('office', 'supremus', 'drinking', 20, PER_OCCUPANT),
    RateRow('office', 'supremus', 'flushing', 25, PER_OCCUPANT),
    RateRow('office', 'iThink', 'drinking', 20, PER_OCCUPANT),
    RateRow('office', 'iThink', 'flushing', 25, PER_OCCUPANT),
    # Retail
    RateRow('retail', 'experia', 'drinking', 25, PER_OCCUPANT, 'Full-time staff'),
    RateRow('retail', 'experia', 'visitor', 5, 'L/visitor/day'),
    RateRow('retail', 'experia', 'flushing', 20, PER_OCCUPANT),
    RateRow('retail', 'experia', 'visitorFlushing', 10, 'L/visitor/day'),
    RateRow('retail', 'boulevard', 'drinking', 25, PER_OCCUPANT, 'Full-time staff'),
    RateRow('retail', 'boulevard', 'visitor', 5, 'L/visitor/day'),
    RateRow('retail', 'boulevard', 'flushing', 20, PER_OCCUPANT),
    RateRow('retail', 'boulevard', 'visitorFlushing', 10, 'L/visitor/day'),
    # Multiplex and school
    RateRow('multiplex', 'standard', 'perSeat', 5, 'L/seat/day'),
    RateRow('multiplex', 'standard', 'flushing', 10, 'L/seat/day'),
    RateRow('school', 'standard', 'perHead', 25, 'L/head/day'),
    RateRow('school', 'standard', 'flushing', 20, 'L/head/day'),
]

OCCUPANTS = 'occupants/unit'

OCCUPANCY_FACTORS: List[RateRow] = [
    RateRow('residential', 'luxury', '1BHK', 0, OCCUPANTS, 'Not offered in this segment'),
    RateRow('residential', 'luxury', '1.5BHK', 5, OCCUPANTS),
    RateRow('residential', 'luxury', '2BHK', 5, OCCUPANTS),
    RateRow('residential', 'luxury', '2.5BHK', 5, OCCUPANTS),
    RateRow('residential', 'luxury', '3BHK', 5, OCCUPANTS),
    RateRow('residential', 'luxury', '4BHK', 7, OCCUPANTS),
    RateRow('residential', 'aspirational', '1BHK', 4, OCCUPANTS),
    RateRow('residential', 'aspirational', '1.5BHK', 4, OCCUPANTS),
    RateRow('residential', 'aspirational', '2BHK', 4, OCCUPANTS),
    RateRow('residential', 'aspirational', '2.5BHK', 5, OCCUPANTS),
    RateRow('residential', 'aspirational', '3BHK', 5, OCCUPANTS),
    RateRow('residential', 'aspirational', '4BHK', 6, OCCUPANTS),
    RateRow('residential', 'casa', '1BHK', 4, OCCUPANTS),
    RateRow('residential', 'casa', '1.5BHK', 4, OCCUPANTS),
    RateRow('residential', 'casa', '2BHK', 4, OCCUPANTS),
    RateRow('residential', 'casa', '2.5BHK', 5, OCCUPANTS),
    RateRow('residential', 'casa', '3BHK', 5, OCCUPANTS),
    RateRow('residential', 'casa', '4BHK', 0, OCCUPANTS, 'Not offered in this segment'),
    RateRow('office', 'excelus', 'sqm_per_person', 7.0, 'sqm/person'),
    RateRow('office', 'excelus', 'peak_factor', 0.9, 'fraction', 'Policy 25 peak occupancy'),
    RateRow('office', 'supremus', 'sqm_per_person', 6.5, 'sqm/person'),
    RateRow('office', 'supremus', 'peak_factor', 0.9, 'fraction', 'Policy 25 peak occupancy'),
    RateRow('office', 'iThink', 'sqm_per_person', 5.5, 'sqm/person'),
    RateRow('office', 'iThink', 'peak_factor', 0.9, 'fraction', 'Policy 25 peak occupancy'),
    RateRow('retail', 'experia', 'sqm_per_fulltime', 10, 'sqm/person'),
    RateRow('retail', 'experia', 'visitor_sqm', 5, 'sqm/visitor'),
    RateRow('retail', 'boulevard', 'sqm_per_fulltime', 10, 'sqm/person'),
    RateRow('retail', 'boulevard', 'visitor_sqm', 7, 'sqm/visitor'),
]

CALCULATION_PARAMETERS: List[ParameterRow] = [
    ParameterRow('pool_evaporation_rate', 8, 'L/sqm/day', 'water',
                 'Pool evaporation: 8mm depth = 8 liters per sqm per day (MEP-21 Page 3)'),
    ParameterRow('landscape_water_rate', 5, 'L/sqm/day', 'water',
                 'Landscape irrigation: 5 ltrs per sqm of actual landscape area (MEP-21 Page 3)'),
    ParameterRow('cooling_tower_rate', 10, 'L/hr/TR', 'cooling',
                 'Central airconditioning makeup water @ 10 ltr/hr/Tr (MEP-21 Page 4)'),
    ParameterRow('storage_buffer_percentage', 20, 'percentage', 'storage',
                 'Storage capacity = 1 day supply + 20% buffer'),
    ParameterRow('oht_domestic_days', 1.0, 'days', 'storage',
                 'Overhead tank: 1 day of domestic water'),
    ParameterRow('oht_flushing_days', 0.5, 'days', 'storage',
                 'Overhead tank: half a day of flushing water'),
    ParameterRow('ugr_domestic_days', 1.5, 'days', 'storage',
                 'Underground reservoir: 1.5 days of domestic water'),
    ParameterRow('ugr_flushing_days', 0.5, 'days', 'storage',
                 'Underground reservoir: half a day of flushing water'),
]

MSEDCL_FACTORS: List[FactorRow] = [
    FactorRow('RESIDENTIAL', 'FLAT', 'Residential Flat Load', watt_per_sqm=75, mdf=0.6, edf=0.1, fdf=0.0),
    FactorRow('COMMERCIAL', 'OFFICE', 'Office Space', watt_per_sqm=100, mdf=0.8, edf=0.2, fdf=0.0),
    FactorRow('COMMERCIAL', 'RETAIL', 'Retail Space', watt_per_sqm=150, mdf=0.8, edf=0.2, fdf=0.0),
    FactorRow('COMMERCIAL', 'MULTIPLEX', 'Multiplex Auditorium', watt_per_sqm=120, mdf=0.9, edf=0.3, fdf=0.0),
    FactorRow('INSTITUTIONAL', 'SCHOOL', 'School Building', watt_per_sqm=50, mdf=0.7, edf=0.2, fdf=0.0),
    FactorRow('LIGHTING', 'LOBBY', 'GF Entrance Lobby', watt_per_sqm=30, mdf=0.8, edf=0.5, fdf=0.5),
    FactorRow('LIGHTING', 'LOBBY', 'Typical Floor Lobby', watt_per_sqm=20, mdf=0.8, edf=0.5, fdf=0.5),
    FactorRow('LIGHTING', 'TERRACE', 'Terrace Lighting', watt_per_sqm=10, mdf=0.7, edf=0.0, fdf=0.0),
    FactorRow('LIGHTING', 'PARKING', 'Parking Area', watt_per_sqm=15, mdf=0.7, edf=0.5, fdf=0.0),
    FactorRow('LIGHTING', 'LANDSCAPE', 'Landscape & External Lighting', watt_per_sqm=10, mdf=0.7, edf=0.0, fdf=0.0),
    FactorRow('AMENITY', 'CLUB', 'Club House', watt_per_sqm=50, mdf=0.7, edf=0.3, fdf=0.0),
    FactorRow('LIFTS', 'PASSENGER', 'Passenger Lift', watt_per_unit=15000, mdf=0.6, edf=0.6, fdf=0.0),
    FactorRow('LIFTS', 'PASSENGER_FIRE', 'Passenger + Fire Lift', watt_per_unit=15000, mdf=0.6, edf=1.0, fdf=1.0),
    FactorRow('LIFTS', 'FIREMEN', 'Firemen Lift', watt_per_unit=15000, mdf=0.6, edf=1.0, fdf=1.0),
    FactorRow('PHE', 'BOOSTER', 'Booster Pump', watt_per_unit=2200, mdf=0.7, edf=1.0, fdf=0.0),
    FactorRow('PHE', 'TRANSFER', 'Domestic Transfer Pump', watt_per_unit=2200, mdf=0.7, edf=1.0, fdf=0.0),
    FactorRow('PHE', 'SEWAGE', 'Sewage Pump', watt_per_unit=2200, mdf=0.5, edf=1.0, fdf=0.0),
    FactorRow('FIRE', 'HYDRANT', 'Main Hydrant Pump', watt_per_unit=112000, mdf=0.0, edf=0.0, fdf=1.0),
    FactorRow('FIRE', 'SPRINKLER', 'Sprinkler Pump', watt_per_unit=56000, mdf=0.0, edf=0.0, fdf=1.0),
    FactorRow('FIRE', 'JOCKEY', 'Jockey Pump', watt_per_unit=9330, mdf=0.0, edf=0.0, fdf=1.0),
]

# IS 1180 / IEC 60076 standard distribution transformer ratings (kVA)
STANDARD_TRANSFORMER_RATINGS = [100, 160, 200, 250, 315, 400, 500, 630, 800, 1000, 1250, 1600, 2000, 2500, 3150]


def seed_water_policy(store: SQLPolicyStore, activate: bool = False,
                      changed_by: Optional[str] = "seed") -> PolicyVersionInfo:
    """Create the MEP-21 + Policy 25 water policy version as a draft (or active default)."""
    version = store.create_policy_version(
        name="MEP-21 Water Demand + Policy 25",
        policy_number="MEP-21",
        revision_number=25,
        description="Water consumption rates and occupancy factors",
        electrical_guideline=MSEDCL_2016,
        created_by=changed_by,
    )
    store.upsert_rates(version.id, RateKind.consumption, CONSUMPTION_RATES, changed_by)
    store.upsert_rates(version.id, RateKind.occupancy, OCCUPANCY_FACTORS, changed_by)
    store.upsert_parameters(version.id, CALCULATION_PARAMETERS, changed_by)
    # hiEnd shares every luxury rate
    store.add_alias('residential', 'hiEnd', 'luxury', policy_version_id=version.id, changed_by=changed_by)

    if activate:
        version = store.activate(version.id, approved_by=changed_by)
    logger.info(f"Seeded water policy {version.policy_number} rev {version.revision_number} ({version.status.value})")
    return version


def seed_msedcl_guideline(store: SQLPolicyStore, changed_by: Optional[str] = "seed") -> str:
    """Create the MSEDCL 2016 electrical factors and the standard transformer series."""
    store.upsert_electrical_factors(MSEDCL_2016, MSEDCL_FACTORS, changed_by)
    for rating in STANDARD_TRANSFORMER_RATINGS:
        store.add_transformer_rating(rating)
    logger.info(f"Seeded guideline {MSEDCL_2016} with {len(MSEDCL_FACTORS)} factors")
    return MSEDCL_2016
