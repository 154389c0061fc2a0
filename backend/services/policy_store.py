"""
Policy Store

Versioned repository of water rate tables, calculation parameters and
electrical guideline factors. Calculations only ever see it through the
``PolicyReader`` contract; ``SQLPolicyStore`` is the SQLModel-backed
implementation that also owns the policy version lifecycle.

The one cross-request invariant lives here: at most one policy version is the
default. ``activate`` clears every other default and sets the new one inside a
single transaction.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Protocol

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from domain.policy.snapshot import (
    ElectricalFactor,
    FactorKey,
    GuidelineSnapshot,
    PolicySnapshot,
    RateKey,
    RatingOption,
    StoredValue,
)
from models.db_models import (
    CalculationParameter,
    ElectricalLoadFactor,
    PolicyChangeLog,
    PolicyVersion,
    ProjectStandardSelection,
    RateEntry,
    SubTypeAlias,
    TransformerRating,
    utcnow,
)
from models.enums import PolicyStatus, ProjectType, RateKind
from services.error_types import GuidelineNotFound, PolicyLifecycleError, PolicyNotFound
from utils.logging_utils import timed_operation

logger = logging.getLogger(__name__)

# Keys of project_standard_selections used by the resolver
PHE_POLICY_STANDARD = "phe_policy_version"
ELECTRICAL_GUIDELINE_STANDARD = "electrical_guideline"


@dataclass(frozen=True)
class PolicyVersionInfo:
    """Detached view of a policy version row."""
    id: int
    name: str
    policy_number: str
    revision_number: int
    status: PolicyStatus
    is_default: bool
    electrical_guideline: Optional[str] = None
    approved_by: Optional[str] = None


@dataclass(frozen=True)
class StandardSelection:
    project_id: str
    standard_key: str
    standard_value: Optional[str] = None
    standard_ref_id: Optional[int] = None


class RateRow(NamedTuple):
    project_type: str
    sub_type: str
    category: str
    value: float
    unit: str = ""
    note: Optional[str] = None


class ParameterRow(NamedTuple):
    name: str
    value: float
    unit: str = ""
    category: Optional[str] = None
    description: Optional[str] = None


class FactorRow(NamedTuple):
    category: str
    sub_category: str
    description: str
    watt_per_sqm: Optional[float] = None
    watt_per_unit: Optional[float] = None
    mdf: float = 1.0
    edf: float = 0.0
    fdf: float = 0.0
    notes: Optional[str] = None


class PolicyReader(Protocol):
    """Read contract the resolver and calculation service depend on."""

    def get_policy_version(self, policy_version_id: int) -> Optional[PolicyVersionInfo]:
        ...

    def list_default_policy_versions(self) -> List[PolicyVersionInfo]:
        ...

    def get_project_selection(self, project_id: str, standard_key: str) -> Optional[StandardSelection]:
        ...

    def load_policy_snapshot(self, policy_version_id: int) -> PolicySnapshot:
        ...

    def load_guideline_snapshot(self, guideline: str) -> GuidelineSnapshot:
        ...

    def list_guidelines(self) -> List[str]:
        ...


def _info(row: PolicyVersion) -> PolicyVersionInfo:
    return PolicyVersionInfo(
        id=row.id,
        name=row.name,
        policy_number=row.policy_number,
        revision_number=row.revision_number,
        status=PolicyStatus(row.status),
        is_default=row.is_default,
        electrical_guideline=row.electrical_guideline,
        approved_by=row.approved_by,
    )


class SQLPolicyStore:
    """SQLModel-backed PolicyReader plus the write operations used by admins and seeding."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_policy_version(self, policy_version_id: int) -> Optional[PolicyVersionInfo]:
        with Session(self.engine) as session:
            row = session.get(PolicyVersion, policy_version_id)
            return _info(row) if row else None

    def list_policy_versions(self) -> List[PolicyVersionInfo]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(PolicyVersion).order_by(PolicyVersion.policy_number, PolicyVersion.revision_number)
            ).all()
            return [_info(row) for row in rows]

    def list_default_policy_versions(self) -> List[PolicyVersionInfo]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(PolicyVersion).where(PolicyVersion.is_default == True)  # noqa: E712
            ).all()
            return [_info(row) for row in rows]

    def get_project_selection(self, project_id: str, standard_key: str) -> Optional[StandardSelection]:
        with Session(self.engine) as session:
            row = session.exec(
                select(ProjectStandardSelection)
                .where(ProjectStandardSelection.project_id == project_id)
                .where(ProjectStandardSelection.standard_key == standard_key)
                .where(ProjectStandardSelection.is_active == True)  # noqa: E712
            ).first()
            if row is None:
                return None
            return StandardSelection(
                project_id=row.project_id,
                standard_key=row.standard_key,
                standard_value=row.standard_value,
                standard_ref_id=row.standard_ref_id,
            )

    @timed_operation("load_policy_snapshot")
    def load_policy_snapshot(self, policy_version_id: int) -> PolicySnapshot:
        """Read every rate, parameter and alias of one version in a single session."""
        with Session(self.engine) as session:
            version = session.get(PolicyVersion, policy_version_id)
            if version is None:
                raise PolicyNotFound(policy_version_id)

            rates = {}
            for row in session.exec(select(RateEntry).where(RateEntry.policy_version_id == policy_version_id)):
                try:
                    project_type = ProjectType(row.project_type)
                except ValueError:
                    logger.warning(f"Skipping rate for unknown project type '{row.project_type}' "
                                   f"in policy version {policy_version_id}")
                    continue
                key = RateKey(RateKind(row.family), project_type, row.sub_type, row.category)
                rates[key] = StoredValue(row.value, row.unit, row.note)

            parameters = {
                row.parameter_name: StoredValue(row.value, row.unit, row.description)
                for row in session.exec(
                    select(CalculationParameter).where(CalculationParameter.policy_version_id == policy_version_id)
                )
            }

            aliases = {
                (row.scope, row.alias): row.canonical
                for row in session.exec(
                    select(SubTypeAlias).where(SubTypeAlias.policy_version_id == policy_version_id)
                )
            }

            logger.info(f"Loaded policy {version.policy_number} rev {version.revision_number} "
                        f"({version.status}): {len(rates)} rates, {len(parameters)} parameters")

            return PolicySnapshot(
                policy_version_id=version.id,
                policy_number=version.policy_number,
                revision_number=version.revision_number,
                status=PolicyStatus(version.status),
                is_default=version.is_default,
                name=version.name,
                rates=rates,
                parameters=parameters,
                aliases=aliases,
                electrical_guideline=version.electrical_guideline,
            )

    @timed_operation("load_guideline_snapshot")
    def load_guideline_snapshot(self, guideline: str) -> GuidelineSnapshot:
        with Session(self.engine) as session:
            rows = session.exec(
                select(ElectricalLoadFactor)
                .where(ElectricalLoadFactor.guideline == guideline)
                .where(ElectricalLoadFactor.is_active == True)  # noqa: E712
            ).all()
            if not rows:
                raise GuidelineNotFound(guideline)

            factors = {}
            for row in rows:
                key = FactorKey(row.category, row.sub_category, row.description)
                factors[key] = ElectricalFactor(
                    key=key,
                    watt_per_sqm=row.watt_per_sqm,
                    watt_per_unit=row.watt_per_unit,
                    mdf=row.mdf,
                    edf=row.edf,
                    fdf=row.fdf,
                    notes=row.notes,
                )

            aliases = {
                (row.scope, row.alias): row.canonical
                for row in session.exec(select(SubTypeAlias).where(SubTypeAlias.guideline == guideline))
            }

            ratings = [
                RatingOption(rating_kva=row.rating_kva, project_type=row.project_type, region=row.state)
                for row in session.exec(
                    select(TransformerRating).where(TransformerRating.is_active == True)  # noqa: E712
                )
            ]

            logger.info(f"Loaded guideline {guideline}: {len(factors)} factors, {len(ratings)} ratings")
            return GuidelineSnapshot(
                guideline=guideline,
                factors=factors,
                aliases=aliases,
                transformer_ratings=tuple(ratings),
            )

    def list_guidelines(self) -> List[str]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(ElectricalLoadFactor.guideline)
                .where(ElectricalLoadFactor.is_active == True)  # noqa: E712
                .distinct()
            ).all()
            return sorted(rows)

    def change_log(self, policy_version_id: Optional[int] = None) -> List[Dict[str, Any]]:
        with Session(self.engine) as session:
            statement = select(PolicyChangeLog).order_by(PolicyChangeLog.id)
            if policy_version_id is not None:
                statement = statement.where(PolicyChangeLog.policy_version_id == policy_version_id)
            return [
                {
                    'policy_version_id': row.policy_version_id,
                    'guideline': row.guideline,
                    'action': row.action,
                    'changed_by': row.changed_by,
                    'payload': row.payload,
                }
                for row in session.exec(statement)
            ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _log(session: Session, action: str, changed_by: Optional[str] = None,
             policy_version_id: Optional[int] = None, guideline: Optional[str] = None,
             payload: Optional[dict] = None) -> None:
        session.add(PolicyChangeLog(
            policy_version_id=policy_version_id,
            guideline=guideline,
            action=action,
            changed_by=changed_by,
            payload=payload,
        ))

    @staticmethod
    def _require_version(session: Session, policy_version_id: int) -> PolicyVersion:
        version = session.get(PolicyVersion, policy_version_id)
        if version is None:
            raise PolicyNotFound(policy_version_id)
        return version

    def create_policy_version(self, name: str, policy_number: str, revision_number: int = 0,
                              effective_date: Optional[date] = None, description: Optional[str] = None,
                              electrical_guideline: Optional[str] = None,
                              created_by: Optional[str] = None) -> PolicyVersionInfo:
        """New versions always start as non-default drafts."""
        with Session(self.engine) as session:
            version = PolicyVersion(
                name=name,
                policy_number=policy_number,
                revision_number=revision_number,
                effective_date=effective_date,
                description=description,
                electrical_guideline=electrical_guideline,
                created_by=created_by,
                status=PolicyStatus.draft,
                is_default=False,
            )
            session.add(version)
            session.flush()
            self._log(session, "create", created_by, version.id,
                      payload={'policy_number': policy_number, 'revision_number': revision_number})
            session.commit()
            session.refresh(version)
            logger.info(f"Created draft policy {policy_number} rev {revision_number} (id={version.id})")
            return _info(version)

    def upsert_rates(self, policy_version_id: int, family: RateKind, rows: Iterable[RateRow],
                     changed_by: Optional[str] = None) -> int:
        """Insert or overwrite rates on (project type, sub-type, category); never duplicates."""
        count = 0
        with Session(self.engine) as session:
            self._require_version(session, policy_version_id)
            for row in rows:
                existing = session.exec(
                    select(RateEntry)
                    .where(RateEntry.policy_version_id == policy_version_id)
                    .where(RateEntry.family == family)
                    .where(RateEntry.project_type == row.project_type)
                    .where(RateEntry.sub_type == row.sub_type)
                    .where(RateEntry.category == row.category)
                ).first()
                if existing is None:
                    existing = RateEntry(
                        policy_version_id=policy_version_id,
                        family=family,
                        project_type=row.project_type,
                        sub_type=row.sub_type,
                        category=row.category,
                        value=row.value,
                    )
                existing.value = row.value
                existing.unit = row.unit
                existing.note = row.note
                existing.updated_at = utcnow()
                session.add(existing)
                count += 1
            self._log(session, "upsert_rates", changed_by, policy_version_id,
                      payload={'family': family.value, 'count': count})
            session.commit()
        logger.info(f"Upserted {count} {family.value} rates into policy version {policy_version_id}")
        return count

    def upsert_parameters(self, policy_version_id: int, rows: Iterable[ParameterRow],
                          changed_by: Optional[str] = None) -> int:
        count = 0
        with Session(self.engine) as session:
            self._require_version(session, policy_version_id)
            for row in rows:
                existing = session.exec(
                    select(CalculationParameter)
                    .where(CalculationParameter.policy_version_id == policy_version_id)
                    .where(CalculationParameter.parameter_name == row.name)
                ).first()
                if existing is None:
                    existing = CalculationParameter(
                        policy_version_id=policy_version_id,
                        parameter_name=row.name,
                        value=row.value,
                    )
                existing.value = row.value
                existing.unit = row.unit
                existing.category = row.category
                existing.description = row.description
                existing.updated_at = utcnow()
                session.add(existing)
                count += 1
            self._log(session, "upsert_parameters", changed_by, policy_version_id, payload={'count': count})
            session.commit()
        return count

    def add_alias(self, scope: str, alias: str, canonical: str, policy_version_id: Optional[int] = None,
                  guideline: Optional[str] = None, changed_by: Optional[str] = None) -> None:
        """
        Declare ``alias`` as sharing the rates of ``canonical``.

        Args:
            scope: Project type (policy version aliases) or factor category (guideline aliases)
            alias: Sub-type name without rates of its own
            canonical: Sub-type name whose rates are used
            policy_version_id: Policy version the alias belongs to
            guideline: Guideline the alias belongs to
        """
        if (policy_version_id is None) == (guideline is None):
            raise ValueError("An alias belongs to exactly one policy version or guideline")

        with Session(self.engine) as session:
            if policy_version_id is not None:
                self._require_version(session, policy_version_id)
            existing = session.exec(
                select(SubTypeAlias)
                .where(SubTypeAlias.policy_version_id == policy_version_id)
                .where(SubTypeAlias.guideline == guideline)
                .where(SubTypeAlias.scope == scope)
                .where(SubTypeAlias.alias == alias)
            ).first()
            if existing is None:
                existing = SubTypeAlias(policy_version_id=policy_version_id, guideline=guideline,
                                        scope=scope, alias=alias, canonical=canonical)
            existing.canonical = canonical
            session.add(existing)
            self._log(session, "add_alias", changed_by, policy_version_id, guideline,
                      payload={'scope': scope, 'alias': alias, 'canonical': canonical})
            session.commit()

    def upsert_electrical_factors(self, guideline: str, rows: Iterable[FactorRow],
                                  changed_by: Optional[str] = None) -> int:
        count = 0
        with Session(self.engine) as session:
            for row in rows:
                existing = session.exec(
                    select(ElectricalLoadFactor)
                    .where(ElectricalLoadFactor.guideline == guideline)
                    .where(ElectricalLoadFactor.category == row.category)
                    .where(ElectricalLoadFactor.sub_category == row.sub_category)
                    .where(ElectricalLoadFactor.description == row.description)
                ).first()
                if existing is None:
                    existing = ElectricalLoadFactor(
                        guideline=guideline,
                        category=row.category,
                        sub_category=row.sub_category,
                        description=row.description,
                    )
                existing.watt_per_sqm = row.watt_per_sqm
                existing.watt_per_unit = row.watt_per_unit
                existing.mdf = row.mdf
                existing.edf = row.edf
                existing.fdf = row.fdf
                existing.notes = row.notes
                existing.is_active = True
                existing.updated_by = changed_by
                existing.updated_at = utcnow()
                session.add(existing)
                count += 1
            self._log(session, "upsert_electrical_factors", changed_by, guideline=guideline,
                      payload={'count': count})
            session.commit()
        logger.info(f"Upserted {count} electrical factors into guideline {guideline}")
        return count

    def add_transformer_rating(self, rating_kva: float, project_type: Optional[str] = None,
                               state: Optional[str] = None, city: Optional[str] = None) -> None:
        with Session(self.engine) as session:
            existing = session.exec(
                select(TransformerRating)
                .where(TransformerRating.rating_kva == rating_kva)
                .where(TransformerRating.project_type == project_type)
                .where(TransformerRating.state == state)
                .where(TransformerRating.city == city)
            ).first()
            if existing is None:
                session.add(TransformerRating(rating_kva=rating_kva, project_type=project_type,
                                              state=state, city=city))
            else:
                existing.is_active = True
                session.add(existing)
            session.commit()

    def select_standard(self, project_id: str, standard_key: str, standard_value: Optional[str] = None,
                        standard_ref_id: Optional[int] = None, changed_by: Optional[str] = None) -> None:
        """Record a project's choice of policy version or guideline; one per key."""
        with Session(self.engine) as session:
            existing = session.exec(
                select(ProjectStandardSelection)
                .where(ProjectStandardSelection.project_id == project_id)
                .where(ProjectStandardSelection.standard_key == standard_key)
            ).first()
            if existing is None:
                existing = ProjectStandardSelection(project_id=project_id, standard_key=standard_key)
            existing.standard_value = standard_value
            existing.standard_ref_id = standard_ref_id
            existing.is_active = True
            existing.updated_at = utcnow()
            session.add(existing)
            self._log(session, "select_standard", changed_by,
                      standard_ref_id if standard_key == PHE_POLICY_STANDARD else None,
                      payload={'project_id': project_id, 'standard_key': standard_key,
                               'standard_value': standard_value, 'standard_ref_id': standard_ref_id})
            session.commit()

    def activate(self, policy_version_id: int, approved_by: Optional[str] = None) -> PolicyVersionInfo:
        """
        Make a version active and the single system default.

        Clearing every other default and setting this one happen in one
        transaction; rows currently marked default are locked first where the
        backend supports it.

        Raises:
            PolicyNotFound: no such version
            PolicyLifecycleError: the version is archived
        """
        with Session(self.engine) as session:
            version = self._require_version(session, policy_version_id)
            if version.status == PolicyStatus.archived:
                raise PolicyLifecycleError(
                    "Archived policy versions cannot be activated",
                    {'policy_version_id': policy_version_id},
                )

            previous = session.exec(
                select(PolicyVersion.id).where(PolicyVersion.is_default == True).with_for_update()  # noqa: E712
            ).all()
            session.execute(
                update(PolicyVersion)
                .where(PolicyVersion.is_default == True)  # noqa: E712
                .where(PolicyVersion.id != policy_version_id)
                .values(is_default=False, updated_at=utcnow())
            )

            now = utcnow()
            version.status = PolicyStatus.active
            version.is_default = True
            version.approved_by = approved_by
            version.approved_at = now
            version.updated_at = now
            session.add(version)
            self._log(session, "activate", approved_by, policy_version_id,
                      payload={'previous_defaults': [pid for pid in previous if pid != policy_version_id]})
            session.commit()
            session.refresh(version)
            logger.info(f"Activated policy {version.policy_number} rev {version.revision_number} as default")
            return _info(version)

    def archive(self, policy_version_id: int, changed_by: Optional[str] = None) -> PolicyVersionInfo:
        """Archive is terminal and drops the default flag if this version held it."""
        with Session(self.engine) as session:
            version = self._require_version(session, policy_version_id)
            if version.status == PolicyStatus.archived:
                raise PolicyLifecycleError(
                    "Policy version is already archived",
                    {'policy_version_id': policy_version_id},
                )

            was_default = version.is_default
            now = utcnow()
            version.status = PolicyStatus.archived
            version.is_default = False
            version.archived_at = now
            version.updated_at = now
            session.add(version)
            self._log(session, "archive", changed_by, policy_version_id, payload={'was_default': was_default})
            session.commit()
            session.refresh(version)
            if was_default:
                logger.warning(f"Archived the default policy {version.policy_number}; no default remains")
            return _info(version)
