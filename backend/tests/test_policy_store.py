"""
Tests for the SQL policy store: default uniqueness, lifecycle, upserts and snapshots
"""

import pytest
from dataclasses import FrozenInstanceError

from models.enums import PolicyStatus, ProjectType, RateKind
from domain.policy.snapshot import RateKey
from services.error_types import GuidelineNotFound, PolicyLifecycleError, PolicyNotFound
from services.policy_seed import MSEDCL_2016, MSEDCL_FACTORS, STANDARD_TRANSFORMER_RATINGS
from services.policy_store import (
    PHE_POLICY_STANDARD,
    FactorRow,
    ParameterRow,
    RateRow,
)


def make_version(store, revision):
    return store.create_policy_version(name=f"Water rev {revision}", policy_number="MEP-21",
                                       revision_number=revision)


class TestDefaultPolicy:
    """Test the single-default invariant across lifecycle operations"""

    def test_new_version_is_non_default_draft(self, store):
        """Test that a created version starts as a non-default draft"""
        version = make_version(store, 1)

        assert version.status == PolicyStatus.draft
        assert version.is_default is False
        assert store.list_default_policy_versions() == []

    @pytest.mark.parametrize("sequence", [
        [0, 1, 2],
        [2, 1, 0],
        [0, 0, 1, 1],
        [1, 2, 1, 0, 2],
    ])
    def test_at_most_one_default_after_activations(self, store, sequence):
        """Test that any activation order leaves exactly the last activated version as default"""
        versions = [make_version(store, rev) for rev in range(3)]

        for index in sequence:
            store.activate(versions[index].id, approved_by="admin")
            defaults = store.list_default_policy_versions()
            assert len(defaults) == 1
            assert defaults[0].id == versions[index].id

    def test_previous_default_stays_active(self, store):
        """Test that activating another version only clears the default flag"""
        first = make_version(store, 1)
        second = make_version(store, 2)
        store.activate(first.id)
        store.activate(second.id)

        reloaded = store.get_policy_version(first.id)
        assert reloaded.status == PolicyStatus.active
        assert reloaded.is_default is False

    def test_archiving_default_leaves_no_default(self, store):
        """Test that archiving the default version leaves zero defaults"""
        version = make_version(store, 1)
        store.activate(version.id)

        archived = store.archive(version.id)

        assert archived.status == PolicyStatus.archived
        assert archived.is_default is False
        assert store.list_default_policy_versions() == []


class TestLifecycle:
    """Test illegal status transitions"""

    def test_activate_archived_raises(self, store):
        """Test that an archived version cannot be re-activated"""
        version = make_version(store, 1)
        store.archive(version.id)

        with pytest.raises(PolicyLifecycleError):
            store.activate(version.id)

    def test_archive_twice_raises(self, store):
        """Test that archive is terminal"""
        version = make_version(store, 1)
        store.archive(version.id)

        with pytest.raises(PolicyLifecycleError):
            store.archive(version.id)

    def test_activate_missing_version_raises(self, store):
        """Test that lifecycle operations on unknown ids fail"""
        with pytest.raises(PolicyNotFound):
            store.activate(999)

    def test_approval_recorded(self, store):
        """Test that activation records the approver"""
        version = make_version(store, 1)
        activated = store.activate(version.id, approved_by="chief.engineer")

        assert activated.approved_by == "chief.engineer"


class TestUpserts:
    """Test that writes overwrite instead of duplicating"""

    def test_rate_upsert_overwrites(self, store):
        """Test that upserting the same key twice keeps one entry with the new value"""
        version = make_version(store, 1)
        store.upsert_rates(version.id, RateKind.consumption, [RateRow('office', 'excelus', 'drinking', 20)])
        store.upsert_rates(version.id, RateKind.consumption, [RateRow('office', 'excelus', 'drinking', 22)])

        snapshot = store.load_policy_snapshot(version.id)
        key = RateKey(RateKind.consumption, ProjectType.office, 'excelus', 'drinking')

        assert len(snapshot.rates) == 1
        assert snapshot.rates[key].value == 22

    def test_same_category_in_both_families(self, store):
        """Test that consumption and occupancy rates with one category are distinct entries"""
        version = make_version(store, 1)
        store.upsert_rates(version.id, RateKind.consumption, [RateRow('office', 'excelus', 'x', 1)])
        store.upsert_rates(version.id, RateKind.occupancy, [RateRow('office', 'excelus', 'x', 2)])

        snapshot = store.load_policy_snapshot(version.id)
        assert len(snapshot.rates) == 2

    def test_parameter_upsert_overwrites(self, store):
        """Test that parameters are unique per version and name"""
        version = make_version(store, 1)
        store.upsert_parameters(version.id, [ParameterRow('storage_buffer_percentage', 20, 'percentage')])
        store.upsert_parameters(version.id, [ParameterRow('storage_buffer_percentage', 25, 'percentage')])

        snapshot = store.load_policy_snapshot(version.id)
        assert dict(snapshot.parameters)['storage_buffer_percentage'].value == 25
        assert len(snapshot.parameters) == 1

    def test_factor_upsert_overwrites(self, store):
        """Test that electrical factors are unique per guideline and key"""
        row = FactorRow('LIFTS', 'PASSENGER', 'Passenger Lift', watt_per_unit=15000, mdf=0.6)
        store.upsert_electrical_factors("G1", [row])
        store.upsert_electrical_factors("G1", [row._replace(watt_per_unit=18000)])

        snapshot = store.load_guideline_snapshot("G1")
        assert len(snapshot.factors) == 1
        assert next(iter(snapshot.factors.values())).watt_per_unit == 18000

    def test_upsert_into_missing_version_raises(self, store):
        """Test that rates cannot be written to an unknown version"""
        with pytest.raises(PolicyNotFound):
            store.upsert_rates(42, RateKind.consumption, [RateRow('office', 'excelus', 'drinking', 20)])

    def test_alias_requires_single_owner(self, store):
        """Test that an alias belongs to exactly one version or guideline"""
        with pytest.raises(ValueError):
            store.add_alias('residential', 'hiEnd', 'luxury')
        with pytest.raises(ValueError):
            store.add_alias('residential', 'hiEnd', 'luxury', policy_version_id=1, guideline="G1")

    def test_selection_replaced(self, store):
        """Test that a project keeps one selection per standard key"""
        store.select_standard("P-1", PHE_POLICY_STANDARD, standard_ref_id=1)
        store.select_standard("P-1", PHE_POLICY_STANDARD, standard_ref_id=2)

        assert store.get_project_selection("P-1", PHE_POLICY_STANDARD).standard_ref_id == 2


class TestChangeLog:
    """Test the policy change log"""

    def test_writes_are_logged(self, store):
        """Test that create, upsert and activate each leave a change log entry"""
        version = make_version(store, 1)
        store.upsert_rates(version.id, RateKind.consumption, [RateRow('office', 'excelus', 'drinking', 20)],
                           changed_by="editor")
        store.activate(version.id, approved_by="admin")

        actions = [entry['action'] for entry in store.change_log(version.id)]
        assert actions == ["create", "upsert_rates", "activate"]

    def test_activation_logs_previous_default(self, store):
        """Test that the activation entry names the default it replaced"""
        first = make_version(store, 1)
        second = make_version(store, 2)
        store.activate(first.id)
        store.activate(second.id)

        entry = store.change_log(second.id)[-1]
        assert entry['payload'] == {'previous_defaults': [first.id]}


class TestSnapshots:
    """Test snapshot loading"""

    def test_seeded_policy_snapshot(self, seeded_store):
        """Test that the seeded version loads rates, parameters and the hiEnd alias"""
        version = seeded_store.list_default_policy_versions()[0]
        snapshot = seeded_store.load_policy_snapshot(version.id)

        assert snapshot.label == "MEP-21 rev 25"
        assert snapshot.status == PolicyStatus.active
        assert snapshot.electrical_guideline == MSEDCL_2016
        assert snapshot.aliases[('residential', 'hiEnd')] == 'luxury'
        assert 'storage_buffer_percentage' in snapshot.parameters

    def test_seeded_guideline_snapshot(self, seeded_store):
        """Test that the seeded guideline carries every factor and rating"""
        snapshot = seeded_store.load_guideline_snapshot(MSEDCL_2016)

        assert len(snapshot.factors) == len(MSEDCL_FACTORS)
        assert sorted(r.rating_kva for r in snapshot.transformer_ratings) == STANDARD_TRANSFORMER_RATINGS
        assert seeded_store.list_guidelines() == [MSEDCL_2016]

    def test_missing_snapshots_raise(self, store):
        """Test that unknown versions and guidelines are reported, not empty"""
        with pytest.raises(PolicyNotFound):
            store.load_policy_snapshot(7)
        with pytest.raises(GuidelineNotFound):
            store.load_guideline_snapshot("IS 732")

    def test_snapshot_is_isolated_from_later_writes(self, store):
        """Test that a loaded snapshot does not see rates written afterwards"""
        version = make_version(store, 1)
        store.upsert_rates(version.id, RateKind.consumption, [RateRow('office', 'excelus', 'drinking', 20)])
        snapshot = store.load_policy_snapshot(version.id)

        store.upsert_rates(version.id, RateKind.consumption, [RateRow('office', 'excelus', 'drinking', 99)])

        key = RateKey(RateKind.consumption, ProjectType.office, 'excelus', 'drinking')
        assert snapshot.rates[key].value == 20

    def test_snapshot_is_immutable(self, seeded_store):
        """Test that snapshots cannot be modified"""
        version = seeded_store.list_default_policy_versions()[0]
        snapshot = seeded_store.load_policy_snapshot(version.id)

        with pytest.raises(TypeError):
            snapshot.parameters['storage_buffer_percentage'] = None
        with pytest.raises(FrozenInstanceError):
            snapshot.status = PolicyStatus.draft
