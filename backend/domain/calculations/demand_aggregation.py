"""
Demand Aggregation
Rolls unit-type loads up through building and project, applying each line's
own demand factors (MDF / EDF / FDF) before summing.
"""

import math
import logging
from dataclasses import dataclass
from typing import Iterable, List

from domain.calculations.unit_loads import UnitLoad

logger = logging.getLogger(__name__)

# Guards ceil against float noise such as 75.00000000000001
REPORT_PRECISION = 9


def report_ceil(value: float) -> int:
    """Round a figure up to the next whole unit at the point it is reported."""
    return int(math.ceil(round(value, REPORT_PRECISION)))


def ceil_to(value: float, places: int) -> float:
    """Round up to ``places`` decimals, for advisory figures."""
    scale = 10 ** places
    return math.ceil(round(value * scale, REPORT_PRECISION)) / scale


def exact_sum(values: Iterable[float]) -> float:
    """Order-independent float sum."""
    return math.fsum(values)


@dataclass(frozen=True)
class DemandLine:
    """One line with its demand factors applied; nothing is rounded yet."""
    load: UnitLoad
    max_demand_w: float
    essential_demand_w: float
    fire_demand_w: float

    @property
    def connected_load_w(self) -> float:
        return self.load.connected_load_w


@dataclass(frozen=True)
class DemandTotals:
    connected_load_w: float = 0.0
    max_demand_w: float = 0.0
    essential_demand_w: float = 0.0
    fire_demand_w: float = 0.0


@dataclass(frozen=True)
class DemandGroup:
    """A named set of lines (a building, or the project's own equipment)."""
    name: str
    lines: List[DemandLine]
    totals: DemandTotals


class DemandAggregator:
    """
    Aggregates connected load and demand.

    Connected load is plain addition at every level. Max, essential and fire
    demand are each line's TCL times that line's factor, then summed, so two
    unit types in one building may carry different diversity.
    """

    @staticmethod
    def apply_factors(load: UnitLoad) -> DemandLine:
        tcl = load.connected_load_w
        return DemandLine(
            load=load,
            max_demand_w=tcl * load.factor.mdf,
            essential_demand_w=tcl * load.factor.edf,
            fire_demand_w=tcl * load.factor.fdf,
        )

    @staticmethod
    def totals(lines: Iterable[DemandLine]) -> DemandTotals:
        lines = list(lines)
        return DemandTotals(
            connected_load_w=exact_sum(l.connected_load_w for l in lines),
            max_demand_w=exact_sum(l.max_demand_w for l in lines),
            essential_demand_w=exact_sum(l.essential_demand_w for l in lines),
            fire_demand_w=exact_sum(l.fire_demand_w for l in lines),
        )

    def group(self, name: str, loads: Iterable[UnitLoad]) -> DemandGroup:
        lines = [self.apply_factors(load) for load in loads]
        return DemandGroup(name=name, lines=lines, totals=self.totals(lines))

    def project_totals(self, groups: Iterable[DemandGroup]) -> DemandTotals:
        """
        Project totals summed over every leaf line, not over rounded or
        partially summed group totals.
        """
        all_lines = [line for group in groups for line in group.lines]
        totals = self.totals(all_lines)
        logger.debug(
            f"Aggregated {len(all_lines)} lines: TCL={totals.connected_load_w:.1f} W, "
            f"MD={totals.max_demand_w:.1f} W"
        )
        return totals


# Global instance
_aggregator = None


def get_demand_aggregator() -> DemandAggregator:
    """Get or create the global demand aggregator"""
    global _aggregator
    if _aggregator is None:
        _aggregator = DemandAggregator()
    return _aggregator
