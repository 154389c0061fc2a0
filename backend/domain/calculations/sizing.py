"""
Sizing Advisor
Maps demand figures to discrete equipment: transformer rating and storage tank.
"""

import math
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from domain.calculations.demand_aggregation import REPORT_PRECISION, ceil_to, report_ceil
from domain.policy.snapshot import RatingOption
from services.error_types import InvalidInventory, NoSuitableRating

logger = logging.getLogger(__name__)

WATTS_PER_KW = 1000.0
LITRES_PER_M3 = 1000.0


def max_demand_kva(max_demand_w: float, power_factor: float) -> float:
    """Apparent power the transformer has to carry."""
    return max_demand_w / WATTS_PER_KW / power_factor


@dataclass(frozen=True)
class TransformerChoice:
    required_kva: int
    rating_kva: float
    candidates_kva: List[float]


def select_transformer(required_kva: float, ratings: Iterable[RatingOption],
                       project_type: Optional[str] = None,
                       region: Optional[str] = None) -> TransformerChoice:
    """
    Select the smallest rating that covers ``required_kva``.

    Args:
        required_kva: Max demand in kVA; reported rounded up, compared as is
        ratings: Rating table rows
        project_type: Only rows for this project type (or unrestricted rows)
        region: Only rows for this state (or unrestricted rows)

    Returns:
        The chosen rating and the filtered candidate list

    Raises:
        NoSuitableRating: every candidate is smaller than the demand
    """
    required = report_ceil(required_kva)
    demand = round(required_kva, REPORT_PRECISION)
    candidates = sorted({r.rating_kva for r in ratings if r.applies_to(project_type, region)})

    for rating in candidates:
        if rating >= demand:
            logger.info(f"Transformer: {required} kVA required, {rating} kVA selected")
            return TransformerChoice(required_kva=required, rating_kva=rating, candidates_kva=candidates)

    raise NoSuitableRating(
        required_kva=required,
        largest_kva=candidates[-1] if candidates else None,
        project_type=project_type,
        region=region,
    )


@dataclass(frozen=True)
class StorageChoice:
    daily_demand_l: int
    buffer_percentage: float
    capacity_l: int
    volume_m3: float
    depth_m: float
    footprint_sqm: float
    side_m: float


def size_storage(daily_demand_l: float, buffer_percentage: float, depth_m: float) -> StorageChoice:
    """
    One day of supply plus a buffer, and the footprint at the given depth.

    The square side length is advisory only.
    """
    if depth_m <= 0:
        raise InvalidInventory("Tank depth must be positive", {'depth_m': depth_m})

    capacity_l = report_ceil(daily_demand_l * (1 + buffer_percentage / 100.0))
    volume_m3 = capacity_l / LITRES_PER_M3
    footprint = volume_m3 / depth_m

    return StorageChoice(
        daily_demand_l=report_ceil(daily_demand_l),
        buffer_percentage=buffer_percentage,
        capacity_l=capacity_l,
        volume_m3=ceil_to(volume_m3, 2),
        depth_m=depth_m,
        footprint_sqm=ceil_to(footprint, 2),
        side_m=ceil_to(math.sqrt(footprint), 2),
    )


@dataclass(frozen=True)
class TankDays:
    """Days of domestic and flushing supply one tank holds."""
    domestic: float
    flushing: float

    def capacity_l(self, domestic_l: float, flushing_l: float) -> float:
        """Unrounded capacity in litres."""
        return domestic_l * self.domestic + flushing_l * self.flushing
