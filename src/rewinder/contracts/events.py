"""Domain events emitted by the history engine.

Consumers subscribe through the EventBus in rewinder.core.events. Events
are plain frozen dataclasses so subscribers cannot mutate shared state.
"""

from dataclasses import dataclass

from rewinder.contracts.identity import RecordIdentity
from rewinder.contracts.versions import Version


@dataclass(frozen=True)
class VersionCreated:
    """A version row was persisted for a tracked record."""

    record_type: str
    record_id: RecordIdentity
    version: Version


@dataclass(frozen=True)
class VersionSkipped:
    """A mutation could not be versioned because the instance lock timed out."""

    record_type: str
    record_id: RecordIdentity
    pending_attributes: tuple[str, ...]


@dataclass(frozen=True)
class PruneCompleted:
    """A prune run finished (dry runs included)."""

    total_examined: int
    total_deleted: int
    dry_run: bool
