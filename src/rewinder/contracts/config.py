"""Runtime configuration dataclasses.

Settings (pydantic, rewinder.core.config) are resolved ONCE at startup
into these frozen dataclasses, which are passed explicitly into the
store, writer, lock provider and prune engine. Nothing in the engine
looks configuration up late or globally.

Settings classes are imported only for type checking to keep contracts
a leaf package.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rewinder.contracts.enums import DispatchMode, LockBackend

if TYPE_CHECKING:
    from rewinder.core.config import (
        HistoryStoreSettings,
        LockSettings,
        PruneSettings,
        RewinderSettings,
        VersioningSettings,
    )

# Table and column names end up in DDL, so they must be plain SQL identifiers
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_identifier(field_name: str, value: str) -> None:
    if not _IDENTIFIER_PATTERN.match(value):
        raise ValueError(f"{field_name} must be a plain SQL identifier, got {value!r}")


@dataclass(frozen=True, slots=True)
class HistorySchema:
    """Schema descriptor for the history tables.

    Field Origins (all from HistoryStoreSettings):
        - table_name: name of the versions table
        - user_id_column: name of the actor column on the versions table
        - lock_table_name: name of the table used by DatabaseLockProvider
    """

    table_name: str = "rewind_versions"
    user_id_column: str = "user_id"
    lock_table_name: str = "rewind_version_locks"

    def __post_init__(self) -> None:
        _validate_identifier("table_name", self.table_name)
        _validate_identifier("user_id_column", self.user_id_column)
        _validate_identifier("lock_table_name", self.lock_table_name)
        if self.table_name == self.lock_table_name:
            raise ValueError("table_name and lock_table_name must differ")

    @classmethod
    def from_settings(cls, settings: "HistoryStoreSettings") -> "HistorySchema":
        return cls(
            table_name=settings.table_name,
            user_id_column=settings.user_id_column,
            lock_table_name=settings.lock_table_name,
        )


@dataclass(frozen=True, slots=True)
class LockConfig:
    """Runtime configuration for per-instance writer locks.

    Field Origins (all from LockSettings):
        - backend: which LockProvider implementation to build
        - wait_seconds: bounded wait before LockTimeoutError
        - lease_seconds: lock validity if the holder never releases
        - poll_interval_seconds: retry cadence for the database backend
    """

    backend: LockBackend
    wait_seconds: float
    lease_seconds: float
    poll_interval_seconds: float

    def __post_init__(self) -> None:
        if self.wait_seconds < 0:
            raise ValueError("wait_seconds must be >= 0")
        if self.lease_seconds <= 0:
            raise ValueError("lease_seconds must be > 0")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")

    @classmethod
    def default(cls) -> "LockConfig":
        return cls(
            backend=LockBackend.MEMORY,
            wait_seconds=20.0,
            lease_seconds=10.0,
            poll_interval_seconds=0.05,
        )

    @classmethod
    def from_settings(cls, settings: "LockSettings") -> "LockConfig":
        return cls(
            backend=LockBackend(settings.backend),
            wait_seconds=settings.wait_seconds,
            lease_seconds=settings.lease_seconds,
            poll_interval_seconds=settings.poll_interval_seconds,
        )


@dataclass(frozen=True, slots=True)
class WriterConfig:
    """Runtime configuration for the version writer.

    Field Origins:
        - snapshot_interval: VersioningSettings.snapshot_interval
        - track_user: VersioningSettings.track_user
        - dispatch: VersioningSettings.dispatch
        - max_workers: VersioningSettings.max_workers (thread dispatch only)
        - lock: LockConfig.from_settings(LockSettings)
    """

    snapshot_interval: int
    track_user: bool
    dispatch: DispatchMode
    max_workers: int
    lock: LockConfig

    def __post_init__(self) -> None:
        if self.snapshot_interval < 1:
            raise ValueError("snapshot_interval must be >= 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @classmethod
    def default(cls) -> "WriterConfig":
        return cls(
            snapshot_interval=10,
            track_user=True,
            dispatch=DispatchMode.SYNC,
            max_workers=4,
            lock=LockConfig.default(),
        )

    @classmethod
    def from_settings(cls, versioning: "VersioningSettings", locks: "LockSettings") -> "WriterConfig":
        return cls(
            snapshot_interval=versioning.snapshot_interval,
            track_user=versioning.track_user,
            dispatch=DispatchMode(versioning.dispatch),
            max_workers=versioning.max_workers,
            lock=LockConfig.from_settings(locks),
        )


@dataclass(frozen=True, slots=True)
class PruneConfig:
    """Runtime configuration for the prune engine.

    Field Origins (all from PruneSettings):
        - retention_days / retention_count: default policy when a prune
          call leaves them unset (None disables that policy)
        - keep_snapshots: protect the anchor snapshot and the chain above it
        - keep_version_one: never delete version 1
        - chunk_size: maximum ids per DELETE statement
    """

    retention_days: int | None
    retention_count: int | None
    keep_snapshots: bool
    keep_version_one: bool
    chunk_size: int

    def __post_init__(self) -> None:
        if self.retention_days is not None and self.retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        if self.retention_count is not None and self.retention_count < 1:
            raise ValueError("retention_count must be >= 1")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

    @classmethod
    def default(cls) -> "PruneConfig":
        return cls(
            retention_days=None,
            retention_count=None,
            keep_snapshots=True,
            keep_version_one=True,
            chunk_size=1000,
        )

    @classmethod
    def from_settings(cls, settings: "PruneSettings") -> "PruneConfig":
        return cls(
            retention_days=settings.retention_days,
            retention_count=settings.retention_count,
            keep_snapshots=settings.keep_snapshots,
            keep_version_one=settings.keep_version_one,
            chunk_size=settings.chunk_size,
        )


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Everything the engine needs, resolved from one RewinderSettings."""

    schema: HistorySchema
    writer: WriterConfig
    prune: PruneConfig

    @classmethod
    def from_settings(cls, settings: "RewinderSettings") -> "RuntimeConfig":
        return cls(
            schema=HistorySchema.from_settings(settings.store),
            writer=WriterConfig.from_settings(settings.versioning, settings.locks),
            prune=PruneConfig.from_settings(settings.pruning),
        )
