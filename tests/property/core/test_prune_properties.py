# tests/property/core/test_prune_properties.py
"""Property-based tests for the prune engine.

Safety Properties:
- With keep_snapshots, the newest version of an instance survives
- keep_version_one protects version 1 under every policy
- With keep_snapshots, every surviving version at or above the oldest
  policy survivor rebuilds to exactly the state it had before pruning

Policy Properties:
- Both policies together delete the intersection of what each deletes alone
- Without safety filters, an age policy deletes exactly the aged versions
- A dry run reports exactly what a real run deletes, and deletes nothing
- Pruning twice with the same policy deletes nothing the second time
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

from hypothesis import given
from hypothesis import strategies as st

from rewinder.contracts.config import PruneConfig
from rewinder.contracts.identity import RecordIdentity
from rewinder.contracts.versions import NewVersion, VersionStub
from rewinder.core.history.reconstruct import HistoryReconstructor
from rewinder.core.history.store import VersionStore
from rewinder.core.retention.prune import PruneEngine, PrunePolicy, select_deletable
from tests.fixtures.history import make_history_db
from tests.property.conftest import GeneratedVersion, created_at_for, histories
from tests.property.settings import SLOW_SETTINGS, STANDARD_SETTINGS

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
IDENTITY = RecordIdentity.from_key(1)

retention_days = st.none() | st.integers(min_value=0, max_value=450)
retention_counts = st.none() | st.integers(min_value=1, max_value=30)


def _store_with(history: list[GeneratedVersion]) -> VersionStore:
    store = VersionStore(make_history_db())
    for row in history:
        store.insert(
            NewVersion(
                record_type="invoice",
                record_id=IDENTITY,
                version=row.version,
                is_snapshot=row.is_snapshot,
                old_values=None,
                new_values=row.new_values,
                user_id=None,
                created_at=created_at_for(row, NOW),
            )
        )
    return store


def _stubs_for(history: list[GeneratedVersion]) -> list[VersionStub]:
    return [
        VersionStub(
            version_id=row.version,
            record_type="invoice",
            record_id=IDENTITY,
            version=row.version,
            is_snapshot=row.is_snapshot,
            created_at=created_at_for(row, NOW),
        )
        for row in history
    ]


def _engine(store: VersionStore, *, keep_version_one: bool = True, keep_snapshots: bool = True) -> PruneEngine:
    config = replace(PruneConfig.default(), keep_version_one=keep_version_one, keep_snapshots=keep_snapshots)
    return PruneEngine(store, config, clock=lambda: NOW)


def _surviving(store: VersionStore) -> list[int]:
    return [v.version for v in store.list_instance_versions("invoice", IDENTITY)]


class TestPruneSafetyProperties:
    """Pruning must never lose the versions reconstruction depends on."""

    @given(history=histories(), days=retention_days, count=retention_counts, keep_version_one=st.booleans())
    @SLOW_SETTINGS
    def test_head_survives_snapshot_protection(
        self,
        history: list[GeneratedVersion],
        days: int | None,
        count: int | None,
        keep_version_one: bool,
    ) -> None:
        store = _store_with(history)
        engine = _engine(store, keep_version_one=keep_version_one, keep_snapshots=True)

        engine.prune(PrunePolicy(retention_days=days, retention_count=count))

        assert _surviving(store)[-1] == history[-1].version

    @given(history=histories(), days=retention_days, count=retention_counts, keep_snapshots=st.booleans())
    @SLOW_SETTINGS
    def test_version_one_protected(
        self,
        history: list[GeneratedVersion],
        days: int | None,
        count: int | None,
        keep_snapshots: bool,
    ) -> None:
        store = _store_with(history)
        engine = _engine(store, keep_version_one=True, keep_snapshots=keep_snapshots)

        engine.prune(PrunePolicy(retention_days=days, retention_count=count))

        assert 1 in _surviving(store)

    @given(history=histories(), days=retention_days, count=retention_counts)
    @SLOW_SETTINGS
    def test_survivors_rebuild_unchanged(
        self,
        history: list[GeneratedVersion],
        days: int | None,
        count: int | None,
    ) -> None:
        """Version 1 is not protected here: a kept version 1 below a pruned
        gap is a standalone snapshot, not part of the surviving chain."""
        store = _store_with(history)
        reconstructor = HistoryReconstructor(store)
        engine = _engine(store, keep_version_one=False, keep_snapshots=True)

        engine.prune(PrunePolicy(retention_days=days, retention_count=count))

        survivors = _surviving(store)
        by_version = {row.version: row for row in history}
        for version in survivors:
            assert reconstructor.state_at("invoice", IDENTITY, version) == by_version[version].state
        # The survivors form one contiguous run ending at the head
        assert survivors == list(range(survivors[0], history[-1].version + 1))


class TestPrunePolicyProperties:
    @given(history=histories(), days=st.integers(min_value=0, max_value=450), count=st.integers(min_value=1, max_value=30))
    @STANDARD_SETTINGS
    def test_dual_policy_deletes_intersection(self, history: list[GeneratedVersion], days: int, count: int) -> None:
        """Without safety filters, both policies together delete the intersection of each alone."""
        stubs = _stubs_for(history)
        cutoff = NOW - timedelta(days=days)

        def deletable(retention_days: int | None, retention_count: int | None) -> set[int]:
            return {
                v.version
                for v in select_deletable(
                    stubs,
                    retention_days=retention_days,
                    retention_count=retention_count,
                    cutoff=cutoff,
                    keep_version_one=False,
                    keep_snapshots=False,
                )
            }

        assert deletable(days, count) == deletable(days, None) & deletable(None, count)

    @given(history=histories(), days=retention_days, count=retention_counts)
    @SLOW_SETTINGS
    def test_dry_run_matches_real_run(self, history: list[GeneratedVersion], days: int | None, count: int | None) -> None:
        store = _store_with(history)
        engine = _engine(store)
        before = _surviving(store)

        preview = engine.prune(PrunePolicy(retention_days=days, retention_count=count, dry_run=True))
        assert _surviving(store) == before

        result = engine.prune(PrunePolicy(retention_days=days, retention_count=count))

        assert preview.total_deleted == result.total_deleted
        assert preview.deleted_by_type == result.deleted_by_type
        assert len(_surviving(store)) == len(before) - result.total_deleted

    @given(
        history=histories(),
        days=retention_days,
        count=retention_counts,
        keep_version_one=st.booleans(),
        keep_snapshots=st.booleans(),
    )
    @SLOW_SETTINGS
    def test_second_prune_deletes_nothing(
        self,
        history: list[GeneratedVersion],
        days: int | None,
        count: int | None,
        keep_version_one: bool,
        keep_snapshots: bool,
    ) -> None:
        store = _store_with(history)
        engine = _engine(store, keep_version_one=keep_version_one, keep_snapshots=keep_snapshots)
        policy = PrunePolicy(retention_days=days, retention_count=count)

        engine.prune(policy)
        again = engine.prune(policy)

        assert again.total_deleted == 0

    @given(history=histories(), days=st.integers(min_value=0, max_value=450))
    @STANDARD_SETTINGS
    def test_without_safety_filters_age_policy_deletes_every_aged_version(
        self, history: list[GeneratedVersion], days: int
    ) -> None:
        stubs = _stubs_for(history)
        cutoff = NOW - timedelta(days=days)

        selected = select_deletable(
            stubs,
            retention_days=days,
            retention_count=None,
            cutoff=cutoff,
            keep_version_one=False,
            keep_snapshots=False,
        )

        assert [v.version for v in selected] == [v.version for v in stubs if v.created_at < cutoff]
