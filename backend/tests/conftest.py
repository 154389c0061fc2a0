"""
Pytest configuration and fixtures
"""
import pytest
from typing import Dict, Iterable, List, Optional

from database import create_db_and_tables, make_engine
from domain.policy.snapshot import (
    ElectricalFactor,
    FactorKey,
    GuidelineSnapshot,
    PolicySnapshot,
    RateKey,
    RatingOption,
    StoredValue,
)
from models.enums import PolicyStatus, ProjectType, RateKind
from models.schemas import Inventory
from services.error_types import GuidelineNotFound, PolicyNotFound
from services.policy_seed import (
    CALCULATION_PARAMETERS,
    CONSUMPTION_RATES,
    MSEDCL_2016,
    MSEDCL_FACTORS,
    OCCUPANCY_FACTORS,
    STANDARD_TRANSFORMER_RATINGS,
    seed_msedcl_guideline,
    seed_water_policy,
)
from services.policy_store import (
    PolicyVersionInfo,
    RateRow,
    SQLPolicyStore,
    StandardSelection,
)

# In-memory SQLite shared through a single connection
TEST_DATABASE_URL = "sqlite://"


def rate_map(family: RateKind, rows: Iterable[RateRow]) -> Dict[RateKey, StoredValue]:
    return {
        RateKey(family, ProjectType(r.project_type), r.sub_type, r.category): StoredValue(r.value, r.unit, r.note)
        for r in rows
    }


def make_policy_snapshot(status: PolicyStatus = PolicyStatus.active, policy_version_id: int = 1,
                         rates: Optional[dict] = None, parameters: Optional[dict] = None,
                         aliases: Optional[dict] = None, is_default: bool = True) -> PolicySnapshot:
    """Seeded MEP-21 policy as a snapshot, without a database."""
    if rates is None:
        rates = {**rate_map(RateKind.consumption, CONSUMPTION_RATES),
                 **rate_map(RateKind.occupancy, OCCUPANCY_FACTORS)}
    if parameters is None:
        parameters = {p.name: StoredValue(p.value, p.unit, p.description) for p in CALCULATION_PARAMETERS}
    if aliases is None:
        aliases = {('residential', 'hiEnd'): 'luxury'}
    return PolicySnapshot(
        policy_version_id=policy_version_id,
        policy_number="MEP-21",
        revision_number=25,
        status=status,
        is_default=is_default,
        rates=rates,
        parameters=parameters,
        aliases=aliases,
        electrical_guideline=MSEDCL_2016,
    )


def make_guideline_snapshot(factors: Optional[List[ElectricalFactor]] = None,
                            ratings: Optional[List[RatingOption]] = None,
                            aliases: Optional[dict] = None) -> GuidelineSnapshot:
    """Seeded MSEDCL 2016 guideline as a snapshot, without a database."""
    if factors is None:
        factors = []
        for row in MSEDCL_FACTORS:
            key = FactorKey(row.category, row.sub_category, row.description)
            factors.append(ElectricalFactor(key=key, watt_per_sqm=row.watt_per_sqm,
                                            watt_per_unit=row.watt_per_unit,
                                            mdf=row.mdf, edf=row.edf, fdf=row.fdf, notes=row.notes))
    if ratings is None:
        ratings = [RatingOption(rating_kva=r) for r in STANDARD_TRANSFORMER_RATINGS]
    return GuidelineSnapshot(
        guideline=MSEDCL_2016,
        factors={f.key: f for f in factors},
        aliases=aliases or {},
        transformer_ratings=tuple(ratings),
    )


class InMemoryPolicyReader:
    """PolicyReader over fixed snapshots, counting snapshot loads."""

    def __init__(self, snapshots: List[PolicySnapshot], guidelines: Optional[List[GuidelineSnapshot]] = None,
                 selections: Optional[List[StandardSelection]] = None):
        self.snapshots = {s.policy_version_id: s for s in snapshots}
        self.guidelines = {g.guideline: g for g in guidelines or []}
        self.selections = {(s.project_id, s.standard_key): s for s in selections or []}
        self.policy_loads = 0
        self.guideline_loads = 0

    @staticmethod
    def _info(snapshot: PolicySnapshot) -> PolicyVersionInfo:
        return PolicyVersionInfo(
            id=snapshot.policy_version_id,
            name=snapshot.name,
            policy_number=snapshot.policy_number,
            revision_number=snapshot.revision_number,
            status=snapshot.status,
            is_default=snapshot.is_default,
            electrical_guideline=snapshot.electrical_guideline,
        )

    def get_policy_version(self, policy_version_id):
        snapshot = self.snapshots.get(policy_version_id)
        return self._info(snapshot) if snapshot else None

    def list_default_policy_versions(self):
        return [self._info(s) for s in self.snapshots.values() if s.is_default]

    def get_project_selection(self, project_id, standard_key):
        return self.selections.get((project_id, standard_key))

    def load_policy_snapshot(self, policy_version_id):
        self.policy_loads += 1
        if policy_version_id not in self.snapshots:
            raise PolicyNotFound(policy_version_id)
        return self.snapshots[policy_version_id]

    def load_guideline_snapshot(self, guideline):
        self.guideline_loads += 1
        if guideline not in self.guidelines:
            raise GuidelineNotFound(guideline)
        return self.guidelines[guideline]

    def list_guidelines(self):
        return sorted(self.guidelines)


@pytest.fixture
def engine():
    """Fresh in-memory policy store per test"""
    engine = make_engine(TEST_DATABASE_URL)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SQLPolicyStore(engine)


@pytest.fixture
def seeded_store(store):
    """Store with the MSEDCL guideline and an active, default MEP-21 policy"""
    seed_msedcl_guideline(store)
    seed_water_policy(store, activate=True)
    return store


@pytest.fixture
def policy_snapshot():
    return make_policy_snapshot()


@pytest.fixture
def guideline_snapshot():
    return make_guideline_snapshot()


@pytest.fixture
def gold2_inventory():
    """Two identical luxury towers: 76 × 2BHK @ 950 ft² and 38 × 3BHK @ 1350 ft² each"""
    tower = {
        'unit_groups': [
            {'unit_type': '2BHK', 'area': 950, 'count': 76},
            {'unit_type': '3BHK', 'area': 1350, 'count': 38},
        ],
    }
    return Inventory.model_validate({
        'project_id': 'P-GOLD2',
        'project_type': 'residential',
        'sub_type': 'luxury',
        'category': 'GOLD 2',
        'area_unit': 'sqft',
        'buildings': [{'name': 'T1', **tower}, {'name': 'T2', **tower}],
    })
