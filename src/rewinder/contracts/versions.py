"""Version history contracts.

These are strict contracts. The repository layer handles the conversion
from stored text (record_id, JSON columns) to these types.
The history table is OUR data: a malformed row is a bug, so it crashes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from rewinder.contracts.identity import RecordIdentity


@dataclass(frozen=True)
class Version:
    """One recorded change to a tracked record.

    When is_snapshot is True, new_values holds the complete trackable
    attribute state at this version, not just the changed attributes.
    """

    version_id: int
    record_type: str
    record_id: RecordIdentity
    version: int
    is_snapshot: bool
    created_at: datetime
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    user_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.record_id, RecordIdentity):
            raise TypeError(f"record_id must be RecordIdentity, got {type(self.record_id).__name__}: {self.record_id!r}")
        if self.version < 1:
            raise ValueError(f"version must be >= 1, got {self.version}")

    @property
    def instance_key(self) -> tuple[str, RecordIdentity]:
        """Grouping key for the tracked record instance this version belongs to."""
        return (self.record_type, self.record_id)


@dataclass(frozen=True)
class NewVersion:
    """A version row about to be inserted (no store-assigned id yet)."""

    record_type: str
    record_id: RecordIdentity
    version: int
    is_snapshot: bool
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    user_id: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class VersionStub:
    """Lightweight projection of a version row used by pruning.

    Prune decisions only need ordering, age and the snapshot flag, so the
    JSON payload columns are never loaded.
    """

    version_id: int
    record_type: str
    record_id: RecordIdentity
    version: int
    is_snapshot: bool
    created_at: datetime

    @property
    def instance_key(self) -> tuple[str, RecordIdentity]:
        return (self.record_type, self.record_id)


@dataclass
class InstanceHistory:
    """All stored versions of one record instance, oldest first."""

    record_type: str
    record_id: RecordIdentity
    versions: list[VersionStub] = field(default_factory=list)

    @property
    def max_version(self) -> int:
        if not self.versions:
            return 0
        return self.versions[-1].version
