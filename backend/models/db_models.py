from sqlmodel import SQLModel, Field, Relationship, Column
from sqlalchemy import JSON, UniqueConstraint
from typing import Optional, List
from datetime import date, datetime, timezone

from models.enums import PolicyStatus, RateKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PolicyVersion(SQLModel, table=True):
    __tablename__ = "policy_versions"
    __table_args__ = (
        UniqueConstraint("policy_number", "revision_number", name="uq_policy_revision"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    policy_number: str = Field(index=True, max_length=64)
    revision_number: int = Field(default=0)
    description: Optional[str] = Field(default=None)
    effective_date: Optional[date] = Field(default=None)
    status: PolicyStatus = Field(default=PolicyStatus.draft, index=True)
    is_default: bool = Field(default=False, index=True)
    # Guideline pinned by this version for electrical calculations
    electrical_guideline: Optional[str] = Field(default=None, max_length=100)
    created_by: Optional[str] = Field(default=None, max_length=255)
    approved_by: Optional[str] = Field(default=None, max_length=255)
    approved_at: Optional[datetime] = Field(default=None)
    archived_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationships
    rates: List["RateEntry"] = Relationship(back_populates="policy_version")
    parameters: List["CalculationParameter"] = Relationship(back_populates="policy_version")


class RateEntry(SQLModel, table=True):
    """Consumption rates and occupancy factors share this table, split by family."""
    __tablename__ = "rate_entries"
    __table_args__ = (
        UniqueConstraint(
            "policy_version_id", "family", "project_type", "sub_type", "category",
            name="uq_rate_entry_key",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    policy_version_id: int = Field(foreign_key="policy_versions.id", index=True)
    family: RateKind = Field(index=True)
    project_type: str = Field(max_length=50)
    sub_type: str = Field(max_length=50)
    category: str = Field(max_length=100)
    value: float
    unit: str = Field(default="", max_length=50)
    note: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    policy_version: Optional[PolicyVersion] = Relationship(back_populates="rates")


class CalculationParameter(SQLModel, table=True):
    __tablename__ = "calculation_parameters"
    __table_args__ = (
        UniqueConstraint("policy_version_id", "parameter_name", name="uq_parameter_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    policy_version_id: int = Field(foreign_key="policy_versions.id", index=True)
    parameter_name: str = Field(max_length=100)
    value: float
    unit: str = Field(default="", max_length=50)
    category: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow)

    policy_version: Optional[PolicyVersion] = Relationship(back_populates="parameters")


class SubTypeAlias(SQLModel, table=True):
    """
    Explicit alias from one sub-type name to a canonical one with identical rates.

    Scoped either to a policy version (``scope`` is a project type) or to a
    guideline (``scope`` is a factor category); exactly one of
    ``policy_version_id`` / ``guideline`` is set.
    """
    __tablename__ = "sub_type_aliases"
    __table_args__ = (
        UniqueConstraint("policy_version_id", "guideline", "scope", "alias", name="uq_sub_type_alias"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    policy_version_id: Optional[int] = Field(default=None, foreign_key="policy_versions.id", index=True)
    guideline: Optional[str] = Field(default=None, max_length=100, index=True)
    scope: str = Field(max_length=50)
    alias: str = Field(max_length=50)
    canonical: str = Field(max_length=50)


class ElectricalLoadFactor(SQLModel, table=True):
    __tablename__ = "electrical_load_factors"
    __table_args__ = (
        UniqueConstraint("guideline", "category", "sub_category", "description", name="uq_load_factor_key"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    guideline: str = Field(default="MSEDCL 2016", max_length=100, index=True)
    category: str = Field(max_length=64)
    sub_category: str = Field(default="default", max_length=64)
    description: str = Field(max_length=255)
    # Exactly one of these is populated: area-based or equipment-based
    watt_per_sqm: Optional[float] = Field(default=None)
    watt_per_unit: Optional[float] = Field(default=None)
    mdf: float = Field(default=1.0)
    edf: float = Field(default=0.0)
    fdf: float = Field(default=0.0)
    notes: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True, index=True)
    updated_by: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class TransformerRating(SQLModel, table=True):
    __tablename__ = "transformer_ratings"

    id: Optional[int] = Field(default=None, primary_key=True)
    rating_kva: float = Field(index=True)
    # None means the rating is offered for every project type / state
    project_type: Optional[str] = Field(default=None, max_length=50)
    state: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = Field(default=True)


class ProjectStandardSelection(SQLModel, table=True):
    __tablename__ = "project_standard_selections"
    __table_args__ = (
        UniqueConstraint("project_id", "standard_key", name="uq_project_standard"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: str = Field(index=True, max_length=64)
    standard_key: str = Field(max_length=100)
    standard_value: Optional[str] = Field(default=None, max_length=255)
    standard_ref_id: Optional[int] = Field(default=None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PolicyChangeLog(SQLModel, table=True):
    __tablename__ = "policy_change_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    policy_version_id: Optional[int] = Field(default=None, foreign_key="policy_versions.id", index=True)
    guideline: Optional[str] = Field(default=None, max_length=100)
    action: str = Field(max_length=50)
    changed_by: Optional[str] = Field(default=None, max_length=255)
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
