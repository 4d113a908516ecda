"""Move a live record backwards or forwards through its history.

Navigation never creates versions: it applies reconstructed state to the
record and moves the record's current_version pointer. The next real
mutation then sees a pointer behind the head and records a snapshot that
diffs against the true head state.
"""

from typing import Any

from rewinder.contracts.errors import VersionNotFoundError
from rewinder.contracts.records import RewindableRecord
from rewinder.core.history.reconstruct import HistoryReconstructor
from rewinder.core.history.store import VersionStore
from rewinder.core.logging import get_logger, instance_logger

logger = get_logger(__name__)


class RewindNavigator:
    """Rewind, fast-forward, or jump a record to a stored version."""

    def __init__(self, store: VersionStore, reconstructor: HistoryReconstructor | None = None) -> None:
        self._store = store
        self._reconstructor = reconstructor or HistoryReconstructor(store)

    def go_to(self, record: RewindableRecord, version: int) -> dict[str, Any]:
        """Apply the state at version to record.

        Returns:
            The applied attribute state

        Raises:
            VersionNotFoundError: If version is outside 1..max stored version
        """
        max_version = self._store.max_version(record.record_type, record.identity) or 0
        if version < 1 or version > max_version:
            raise VersionNotFoundError(record.record_type, record.identity.value, version, max_version)

        state = self._reconstructor.state_at(record.record_type, record.identity, version)
        record.apply_attributes(state)
        if record.has_current_version_pointer:
            record.set_current_version(version)

        instance_logger(logger, record.record_type, record.identity).info(
            "Moved record to version", version=version, max_version=max_version
        )
        return state

    def rewind(self, record: RewindableRecord, steps: int = 1) -> dict[str, Any]:
        """Go back steps versions from the record's current position."""
        if steps < 1:
            raise ValueError(f"steps must be >= 1, got {steps}")
        return self.go_to(record, self._position(record) - steps)

    def fast_forward(self, record: RewindableRecord, steps: int = 1) -> dict[str, Any]:
        """Go forward steps versions from the record's current position."""
        if steps < 1:
            raise ValueError(f"steps must be >= 1, got {steps}")
        return self.go_to(record, self._position(record) + steps)

    def _position(self, record: RewindableRecord) -> int:
        # Records without a pointer are always at the head
        current = record.current_version
        if current:
            return current
        return self._store.max_version(record.record_type, record.identity) or 0
