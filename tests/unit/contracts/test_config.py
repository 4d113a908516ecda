"""Tests for runtime configuration dataclasses and their settings mapping."""

import pytest

from rewinder.contracts.config import (
    HistorySchema,
    LockConfig,
    PruneConfig,
    RuntimeConfig,
    WriterConfig,
)
from rewinder.contracts.enums import DispatchMode, LockBackend
from rewinder.core.config import (
    HistoryStoreSettings,
    LockSettings,
    PruneSettings,
    RewinderSettings,
    VersioningSettings,
)


class TestDefaults:
    """Defaults match the documented configuration surface."""

    def test_writer_defaults(self) -> None:
        config = WriterConfig.default()

        assert config.snapshot_interval == 10
        assert config.track_user is True
        assert config.dispatch is DispatchMode.SYNC
        assert config.lock.wait_seconds == 20.0
        assert config.lock.lease_seconds == 10.0

    def test_prune_defaults(self) -> None:
        config = PruneConfig.default()

        assert config.retention_days is None
        assert config.retention_count is None
        assert config.keep_snapshots is True
        assert config.keep_version_one is True
        assert config.chunk_size == 1000

    def test_default_settings_resolve_to_default_configs(self) -> None:
        runtime = RuntimeConfig.from_settings(RewinderSettings())

        assert runtime.schema == HistorySchema()
        assert runtime.writer == WriterConfig.default()
        assert runtime.prune == PruneConfig.default()


class TestFromSettings:
    def test_writer_from_settings(self) -> None:
        config = WriterConfig.from_settings(
            VersioningSettings(snapshot_interval=5, track_user=False, dispatch="thread", max_workers=2),
            LockSettings(backend="database", wait_seconds=3.0, lease_seconds=6.0),
        )

        assert config.snapshot_interval == 5
        assert config.track_user is False
        assert config.dispatch is DispatchMode.THREAD
        assert config.max_workers == 2
        assert config.lock.backend is LockBackend.DATABASE
        assert config.lock.wait_seconds == 3.0

    def test_schema_from_settings(self) -> None:
        schema = HistorySchema.from_settings(
            HistoryStoreSettings(table_name="audit_versions", user_id_column="actor", lock_table_name="audit_locks")
        )

        assert schema == HistorySchema(table_name="audit_versions", user_id_column="actor", lock_table_name="audit_locks")

    def test_prune_from_settings(self) -> None:
        config = PruneConfig.from_settings(PruneSettings(retention_days=90, keep_snapshots=False, chunk_size=50))

        assert config.retention_days == 90
        assert config.retention_count is None
        assert config.keep_snapshots is False
        assert config.chunk_size == 50


class TestValidation:
    @pytest.mark.parametrize("name", ["versions; DROP TABLE x", "1versions", "has space", ""])
    def test_schema_rejects_non_identifiers(self, name: str) -> None:
        with pytest.raises(ValueError, match="plain SQL identifier"):
            HistorySchema(table_name=name)

    def test_schema_tables_must_differ(self) -> None:
        with pytest.raises(ValueError, match="must differ"):
            HistorySchema(table_name="history", lock_table_name="history")

    def test_lock_lease_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="lease_seconds"):
            LockConfig(backend=LockBackend.MEMORY, wait_seconds=1.0, lease_seconds=0.0, poll_interval_seconds=0.05)

    def test_writer_snapshot_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="snapshot_interval"):
            WriterConfig(
                snapshot_interval=0,
                track_user=True,
                dispatch=DispatchMode.SYNC,
                max_workers=1,
                lock=LockConfig.default(),
            )

    def test_prune_chunk_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="chunk_size"):
            PruneConfig(
                retention_days=None,
                retention_count=None,
                keep_snapshots=True,
                keep_version_one=True,
                chunk_size=0,
            )
