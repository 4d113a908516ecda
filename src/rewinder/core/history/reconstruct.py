# src/rewinder/core/history/reconstruct.py
"""Attribute state reconstruction from snapshots and diffs.

State at version V = the latest snapshot at or before V, overlaid with
the new_values of every later version up to V in ascending order. Later
keys win. Reconstruction is read-only and deterministic.
"""

from typing import Any

from rewinder.contracts.identity import RecordIdentity
from rewinder.contracts.records import TrackedRecord
from rewinder.core.history.store import VersionStore


class HistoryReconstructor:
    """Rebuilds attribute state for a record instance at any stored version."""

    def __init__(self, store: VersionStore) -> None:
        self._store = store

    def state_at(self, record_type: str, identity: RecordIdentity, target_version: int) -> dict[str, Any]:
        """Attribute state of an instance at target_version.

        Args:
            record_type: Type discriminator
            identity: Record identity
            target_version: Version to materialize (>= 1)

        Returns:
            Attribute mapping; empty when the instance has no history

        Raises:
            ValueError: If target_version < 1
        """
        if target_version < 1:
            raise ValueError(f"target_version must be >= 1, got {target_version}")

        snapshot = self._store.latest_snapshot(record_type, identity, at_or_before=target_version)
        state: dict[str, Any] = {}
        after = 0
        if snapshot is not None:
            state.update(snapshot.new_values or {})
            after = snapshot.version

        for version in self._store.versions_between(record_type, identity, after=after, up_to=target_version):
            if version.new_values:
                state.update(version.new_values)
        return state

    def materialize(self, record: TrackedRecord, target_version: int) -> dict[str, Any]:
        """Attribute state of a tracked record at target_version."""
        return self.state_at(record.record_type, record.identity, target_version)

    def rebuild_head(self, record_type: str, identity: RecordIdentity) -> dict[str, Any]:
        """Attribute state at the highest stored version (empty without history)."""
        max_version = self._store.max_version(record_type, identity)
        if max_version is None:
            return {}
        return self.state_at(record_type, identity, max_version)
