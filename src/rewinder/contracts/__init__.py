"""Shared contracts: identities, version records, record protocols, errors, events.

This is a leaf package. It must not import from rewinder.core.
"""

from rewinder.contracts.config import (
    HistorySchema,
    LockConfig,
    PruneConfig,
    RuntimeConfig,
    WriterConfig,
)
from rewinder.contracts.enums import DispatchMode, IdentityKind, LockBackend
from rewinder.contracts.errors import (
    LockTimeoutError,
    RewinderError,
    SchemaCompatibilityError,
    VersionNotFoundError,
)
from rewinder.contracts.events import PruneCompleted, VersionCreated, VersionSkipped
from rewinder.contracts.identity import RecordIdentity
from rewinder.contracts.records import RewindableRecord, TrackedRecord
from rewinder.contracts.versions import InstanceHistory, NewVersion, Version, VersionStub

__all__ = [
    "DispatchMode",
    "HistorySchema",
    "IdentityKind",
    "InstanceHistory",
    "LockBackend",
    "LockConfig",
    "LockTimeoutError",
    "NewVersion",
    "PruneCompleted",
    "PruneConfig",
    "RecordIdentity",
    "RewindableRecord",
    "RewinderError",
    "RuntimeConfig",
    "SchemaCompatibilityError",
    "TrackedRecord",
    "Version",
    "VersionCreated",
    "VersionNotFoundError",
    "VersionSkipped",
    "VersionStub",
    "WriterConfig",
]
