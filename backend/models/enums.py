"""
Enums for demand engine models to ensure type safety and consistency
"""

from enum import Enum


class PolicyStatus(str, Enum):
    """Lifecycle status of a policy version"""
    draft = 'draft'
    active = 'active'
    archived = 'archived'


class RateKind(str, Enum):
    """Rate entry families stored against a policy version"""
    consumption = 'consumption'   # e.g. L/occupant/day
    occupancy = 'occupancy'       # e.g. occupants/unit, m²/person


class ProjectType(str, Enum):
    """Project types with their own occupancy basis"""
    residential = 'residential'
    office = 'office'
    retail = 'retail'
    multiplex = 'multiplex'
    school = 'school'


class OccupancyBasis(str, Enum):
    """How occupants are derived from a unit group"""
    per_unit = 'per_unit'         # count × occupants/unit
    per_area = 'per_area'         # area ÷ m²/person
    per_seat = 'per_seat'         # count is seats
    per_head = 'per_head'         # count is heads


class FlushSystemType(str, Enum):
    """Toilet flushing system selected by the caller"""
    valve = 'valve'
    tank = 'tank'


class AreaUnit(str, Enum):
    """Unit the inventory areas are given in"""
    sqm = 'sqm'
    sqft = 'sqft'


class AmenityKind(str, Enum):
    """Demand lines computed from calculation parameters rather than occupants"""
    pool = 'pool'
    landscape = 'landscape'
    cooling_tower = 'cooling_tower'


class PolicySource(str, Enum):
    """Kind of rate set a report was produced from"""
    policy_version = 'policy_version'
    guideline = 'guideline'


OCCUPANCY_BASIS = {
    ProjectType.residential: OccupancyBasis.per_unit,
    ProjectType.office: OccupancyBasis.per_area,
    ProjectType.retail: OccupancyBasis.per_area,
    ProjectType.multiplex: OccupancyBasis.per_seat,
    ProjectType.school: OccupancyBasis.per_head,
}
