"""
Typed accessors over policy and guideline snapshots.

Lookup order is fixed: exact key, then one retry through the snapshot's
explicit alias table, then RateNotFound. A missing rate is never treated as
zero, and every value is validated (numeric, finite, non-negative) at the
moment it is read so corrupt data surfaces immediately.
"""

import math
import logging
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Optional

from domain.policy.snapshot import (
    ElectricalFactor,
    FactorKey,
    GuidelineSnapshot,
    PolicySnapshot,
    RateKey,
)
from models.enums import ProjectType, RateKind
from services.error_types import CorruptRate, FactorConfigurationError, RateNotFound

logger = logging.getLogger(__name__)


def validate_number(value: Any, key: Dict[str, Any], *, fraction: bool = False,
                    positive: bool = False) -> float:
    """
    Check a stored value and return it as a float.

    Args:
        value: Raw stored value
        key: Lookup key description included in the error details
        fraction: Value must lie in 0..1 (demand factors)
        positive: Value is used as a divisor and must be > 0

    Returns:
        The value as float

    Raises:
        CorruptRate: non-numeric, non-finite, negative or out of range
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise CorruptRate("Stored rate is not numeric", key, value)
    number = float(value)
    if not math.isfinite(number):
        raise CorruptRate("Stored rate is not finite", key, value)
    if number < 0:
        raise CorruptRate("Stored rate is negative", key, value)
    if fraction and number > 1:
        raise CorruptRate("Demand factor is outside 0..1", key, value)
    if positive and number == 0:
        raise CorruptRate("Stored divisor is zero", key, value)
    return number


class RateLookup:
    """Water consumption rates, occupancy factors and parameters of one policy version."""

    def __init__(self, snapshot: PolicySnapshot):
        self.snapshot = snapshot

    def _source(self) -> str:
        return self.snapshot.label

    def _find(self, key: RateKey):
        stored = self.snapshot.rates.get(key)
        if stored is not None:
            return key, stored

        canonical = self.snapshot.alias_for(key)
        if canonical is not None:
            aliased = key.with_sub_type(canonical)
            stored = self.snapshot.rates.get(aliased)
            if stored is not None:
                logger.debug(f"Rate {key.sub_type}/{key.category} resolved via alias {canonical}")
                return aliased, stored

        return key, None

    def has_rate(self, key: RateKey) -> bool:
        """True when ``key`` resolves, directly or through an alias."""
        return self._find(key)[1] is not None

    def rate_for(self, key: RateKey, *, positive: bool = False) -> float:
        """
        Resolve ``key`` to a validated number.

        Raises:
            RateNotFound: no entry and no alias fallback
            CorruptRate: the stored value violates the numeric invariant
        """
        resolved, stored = self._find(key)
        if stored is None:
            raise RateNotFound(
                key.kind.value, key.project_type.value, key.sub_type, key.category,
                source=self._source(),
            )
        details = {**resolved.describe(), 'source': self._source()}
        return validate_number(stored.value, details, positive=positive)

    def rate(self, kind: RateKind, project_type: ProjectType, sub_type: str, category: str,
             *, positive: bool = False) -> float:
        return self.rate_for(RateKey(kind, project_type, sub_type, category), positive=positive)

    def parameter(self, name: str) -> float:
        """Flat calculation constant; missing parameters raise RateNotFound."""
        stored = self.snapshot.parameters.get(name)
        if stored is None:
            raise RateNotFound('parameter', '*', '*', name, source=self._source())
        details = {'kind': 'parameter', 'category': name, 'source': self._source()}
        return validate_number(stored.value, details)


@dataclass(frozen=True)
class ValidatedFactor:
    """An electrical factor whose numbers have been checked."""
    key: FactorKey
    watt_per_sqm: Optional[float]
    watt_per_unit: Optional[float]
    mdf: float
    edf: float
    fdf: float
    notes: Optional[str] = None

    @property
    def is_area_based(self) -> bool:
        return self.watt_per_sqm is not None


class FactorLookup:
    """Electrical load factors of one guideline."""

    def __init__(self, snapshot: GuidelineSnapshot):
        self.snapshot = snapshot

    def _find(self, key: FactorKey) -> Optional[ElectricalFactor]:
        factor = self.snapshot.factors.get(key)
        if factor is not None:
            return factor

        canonical = self.snapshot.alias_for(key)
        if canonical is not None:
            return self.snapshot.factors.get(key.with_sub_type(canonical))
        return None

    def factor(self, key: FactorKey) -> ValidatedFactor:
        """
        Resolve ``key`` to a checked factor.

        Raises:
            RateNotFound: no entry and no alias fallback
            CorruptRate: a stored number is invalid
            FactorConfigurationError: both or neither of W/m² and W/unit set
        """
        entry = self._find(key)
        if entry is None:
            raise RateNotFound(
                'electrical_factor', key.category, key.sub_category, key.description,
                source=self.snapshot.guideline,
            )

        details = {**entry.key.describe(), 'source': self.snapshot.guideline}
        has_area = entry.watt_per_sqm is not None
        has_unit = entry.watt_per_unit is not None
        if has_area == has_unit:
            raise FactorConfigurationError(
                "Factor must define exactly one of watt_per_sqm and watt_per_unit",
                {**details, 'watt_per_sqm': entry.watt_per_sqm, 'watt_per_unit': entry.watt_per_unit},
            )

        return ValidatedFactor(
            key=entry.key,
            watt_per_sqm=validate_number(entry.watt_per_sqm, details) if has_area else None,
            watt_per_unit=validate_number(entry.watt_per_unit, details) if has_unit else None,
            mdf=validate_number(entry.mdf, {**details, 'field': 'mdf'}, fraction=True),
            edf=validate_number(entry.edf, {**details, 'field': 'edf'}, fraction=True),
            fdf=validate_number(entry.fdf, {**details, 'field': 'fdf'}, fraction=True),
            notes=entry.notes,
        )
