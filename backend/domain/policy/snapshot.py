"""
Immutable policy and guideline snapshots.

A snapshot is loaded once per calculation and passed by reference to every
stage of the pipeline, so all lookups in one report observe the same rates
even if the store changes concurrently. Nothing in here is ever mutated after
construction.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from models.enums import PolicySource, PolicyStatus, ProjectType, RateKind


@dataclass(frozen=True)
class RateKey:
    """Key of a water rate entry within one policy version."""
    kind: RateKind
    project_type: ProjectType
    sub_type: str
    category: str

    def with_sub_type(self, sub_type: str) -> "RateKey":
        return RateKey(self.kind, self.project_type, sub_type, self.category)

    def describe(self) -> Dict[str, str]:
        return {
            'kind': self.kind.value,
            'project_type': self.project_type.value,
            'sub_type': self.sub_type,
            'category': self.category,
        }


@dataclass(frozen=True)
class FactorKey:
    """
    Key of an electrical load factor within one guideline.

    ``category`` plays the role of the project type in alias resolution and
    ``sub_category`` the role of the sub-type.
    """
    category: str
    sub_category: str
    description: str

    def with_sub_type(self, sub_category: str) -> "FactorKey":
        return FactorKey(self.category, sub_category, self.description)

    def describe(self) -> Dict[str, str]:
        return {
            'kind': 'electrical_factor',
            'project_type': self.category,
            'sub_type': self.sub_category,
            'category': self.description,
        }


LookupKey = Union[RateKey, FactorKey]


@dataclass(frozen=True)
class StoredValue:
    """A raw stored number with its unit, validated only when looked up."""
    value: Any
    unit: str = ""
    note: Optional[str] = None


@dataclass(frozen=True)
class ElectricalFactor:
    key: FactorKey
    watt_per_sqm: Any = None
    watt_per_unit: Any = None
    mdf: Any = 1.0
    edf: Any = 0.0
    fdf: Any = 0.0
    notes: Optional[str] = None


@dataclass(frozen=True)
class RatingOption:
    """One row of the transformer rating table."""
    rating_kva: float
    project_type: Optional[str] = None
    region: Optional[str] = None

    def applies_to(self, project_type: Optional[str], region: Optional[str]) -> bool:
        if self.project_type is not None and self.project_type != project_type:
            return False
        if self.region is not None and self.region != region:
            return False
        return True


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class PolicySnapshot:
    """Every rate, parameter and alias of one policy version."""
    policy_version_id: int
    policy_number: str
    revision_number: int
    status: PolicyStatus
    is_default: bool = False
    name: str = ""
    rates: Mapping[RateKey, StoredValue] = field(default_factory=dict)
    parameters: Mapping[str, StoredValue] = field(default_factory=dict)
    # (project type, alias sub-type) -> canonical sub-type
    aliases: Mapping[Tuple[str, str], str] = field(default_factory=dict)
    electrical_guideline: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'rates', _freeze(self.rates))
        object.__setattr__(self, 'parameters', _freeze(self.parameters))
        object.__setattr__(self, 'aliases', _freeze(self.aliases))

    @property
    def source(self) -> PolicySource:
        return PolicySource.policy_version

    @property
    def label(self) -> str:
        return f"{self.policy_number} rev {self.revision_number}"

    def alias_for(self, key: RateKey) -> Optional[str]:
        return self.aliases.get((key.project_type.value, key.sub_type))


@dataclass(frozen=True)
class GuidelineSnapshot:
    """Active electrical load factors of one guideline plus the rating table."""
    guideline: str
    factors: Mapping[FactorKey, ElectricalFactor] = field(default_factory=dict)
    # (category, alias sub-category) -> canonical sub-category
    aliases: Mapping[Tuple[str, str], str] = field(default_factory=dict)
    transformer_ratings: Tuple[RatingOption, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'factors', _freeze(self.factors))
        object.__setattr__(self, 'aliases', _freeze(self.aliases))
        object.__setattr__(self, 'transformer_ratings', tuple(self.transformer_ratings))

    @property
    def source(self) -> PolicySource:
        return PolicySource.guideline

    @property
    def label(self) -> str:
        return self.guideline

    def alias_for(self, key: FactorKey) -> Optional[str]:
        return self.aliases.get((key.category, key.sub_category))
