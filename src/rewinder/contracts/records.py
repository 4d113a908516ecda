"""Record accessor protocols.

The host application owns its records and their storage. Rewinder only
sees them through these structural protocols, so any ORM (or none) can
be adapted.
"""

from typing import Any, Protocol, runtime_checkable

from rewinder.contracts.identity import RecordIdentity


@runtime_checkable
class TrackedRecord(Protocol):
    """Capability set the version writer needs from a host record.

    Implementations describe ONE completed mutation: dirty_attributes()
    and original_value() refer to the change that just happened.
    """

    @property
    def record_type(self) -> str:
        """Opaque type discriminator (stable across deployments)."""
        ...

    @property
    def identity(self) -> RecordIdentity:
        """Stable primary key of the record."""
        ...

    @property
    def exists(self) -> bool:
        """Whether the record is persisted in host storage."""
        ...

    @property
    def was_recently_created(self) -> bool:
        """Whether this mutation created the record."""
        ...

    @property
    def excluded_attributes(self) -> frozenset[str]:
        """Persisted attributes that are never versioned (e.g. timestamps)."""
        ...

    @property
    def soft_delete_column(self) -> str | None:
        """Soft-delete marker column, or None if the record hard-deletes."""
        ...

    @property
    def has_current_version_pointer(self) -> bool:
        """Whether the record caches its current version number."""
        ...

    @property
    def current_version(self) -> int | None:
        """Cached current version pointer (None when unset or unsupported)."""
        ...

    @property
    def actor_id(self) -> int | str | None:
        """User responsible for the mutation, if known."""
        ...

    def dirty_attributes(self) -> dict[str, Any]:
        """Attributes changed by this mutation, with their new values."""
        ...

    def all_attributes(self) -> dict[str, Any]:
        """All persisted attributes with their current values."""
        ...

    def original_value(self, name: str) -> Any:
        """Value of an attribute before this mutation."""
        ...

    def set_current_version(self, version: int) -> None:
        """Persist the version pointer WITHOUT triggering versioning again."""
        ...


@runtime_checkable
class RewindableRecord(TrackedRecord, Protocol):
    """A tracked record whose live attributes can be overwritten.

    Needed only by RewindNavigator, which applies reconstructed state
    back onto the record.
    """

    def apply_attributes(self, values: dict[str, Any]) -> None:
        """Overwrite live attributes and persist them without versioning."""
        ...
