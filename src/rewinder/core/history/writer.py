# src/rewinder/core/history/writer.py
"""VersionWriter: turns one completed mutation into one version row.

Runs after the host mutation has committed. Every step happens under a
per-instance leased lock so version numbers stay gap-free and unique even
with concurrent writers:

1. Lock rewinder-version-lock-{record_type}-{id}
2. Bail out if nothing is dirty any more
3. next_version = max stored version + 1
4. If the record's pointer is not at the head (after a rewind), rebuild
   the head state and force a snapshot
5. Diff the trackable attributes (or take all of them for a snapshot)
6. Insert, move the record's pointer, emit VersionCreated

A lock timeout is NOT propagated: the host mutation already happened, so
the failure is logged and the version skipped. The next successful write
for the instance resynchronises through the not-head path.
"""

from typing import Any

from rewinder.contracts.config import WriterConfig
from rewinder.contracts.errors import LockTimeoutError
from rewinder.contracts.events import VersionCreated, VersionSkipped
from rewinder.contracts.records import TrackedRecord
from rewinder.contracts.versions import NewVersion, Version
from rewinder.core.canonical import normalize_attribute_value
from rewinder.core.events import EventBusProtocol, NullEventBus
from rewinder.core.history.reconstruct import HistoryReconstructor
from rewinder.core.history.store import VersionStore
from rewinder.core.locking import LockHandle, LockProvider
from rewinder.core.logging import get_logger, instance_logger

logger = get_logger(__name__)

LOCK_NAME_PREFIX = "rewinder-version-lock"


def lock_name(record_type: str, record_id: str) -> str:
    """Name of the per-instance writer lock."""
    return f"{LOCK_NAME_PREFIX}-{record_type}-{record_id}"


def _is_empty(value: Any) -> bool:
    """None, empty string, zero and empty containers count as empty."""
    if value is None:
        return True
    if isinstance(value, str | int | float | list | dict | tuple):
        return not value
    return False


def trackable_attributes(record: TrackedRecord) -> list[str]:
    """Persisted attributes minus exclusions, plus the soft-delete marker.

    Order follows all_attributes(); duplicates are dropped.
    """
    excluded = record.excluded_attributes
    names = [name for name in record.all_attributes() if name not in excluded]
    soft_delete = record.soft_delete_column
    if soft_delete is not None and soft_delete not in names:
        names.append(soft_delete)
    return names


class VersionWriter:
    """Records versions for tracked records.

    Example:
        writer = VersionWriter(store, InProcessLockProvider(), WriterConfig.default())
        version = writer.record_change(record)  # None when nothing changed

    Args:
        store: Version persistence
        locks: Per-instance lock provider
        config: Snapshot interval, user tracking and lock timings
        reconstructor: Head rebuilder (defaults to one over the same store)
        event_bus: Receives VersionCreated / VersionSkipped
    """

    def __init__(
        self,
        store: VersionStore,
        locks: LockProvider,
        config: WriterConfig,
        *,
        reconstructor: HistoryReconstructor | None = None,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        self._store = store
        self._locks = locks
        self._config = config
        self._reconstructor = reconstructor or HistoryReconstructor(store)
        self._events: EventBusProtocol = event_bus or NullEventBus()

    @property
    def config(self) -> WriterConfig:
        return self._config

    def record_change(self, record: TrackedRecord) -> Version | None:
        """Record the mutation that just happened to record.

        Returns:
            The persisted Version, or None when there was nothing to record
            or the instance lock timed out

        Raises:
            sqlalchemy.exc.SQLAlchemyError: Storage failure (lock released first)
        """
        name = lock_name(record.record_type, record.identity.value)
        handle: LockHandle | None = None
        try:
            handle = self._locks.acquire(
                name,
                wait_seconds=self._config.lock.wait_seconds,
                lease_seconds=self._config.lock.lease_seconds,
            )
            version = self._write_locked(record)
        except LockTimeoutError as exc:
            self._handle_lock_timeout(record, exc)
            return None
        finally:
            if handle is not None:
                handle.release()

        if version is not None:
            self._events.emit(VersionCreated(record_type=version.record_type, record_id=version.record_id, version=version))
        return version

    def _write_locked(self, record: TrackedRecord) -> Version | None:
        dirty = record.dirty_attributes()
        if not dirty and not record.was_recently_created and record.exists:
            return None

        record_type = record.record_type
        identity = record.identity
        next_version = (self._store.max_version(record_type, identity) or 0) + 1

        old_values: dict[str, Any] = {}
        new_values: dict[str, Any] = {}
        is_snapshot = False

        current = record.current_version
        if current and current != next_version - 1:
            # Pointer is behind the head (rewound): diff against the real head
            is_snapshot = True
            old_values = self._reconstructor.rebuild_head(record_type, identity)

        attributes = record.all_attributes()
        tracked = trackable_attributes(record)
        for attribute in tracked:
            original = old_values[attribute] if attribute in old_values else record.original_value(attribute)
            if (record.was_recently_created and _is_empty(original)) or not record.exists or attribute in dirty:
                old_values[attribute] = normalize_attribute_value(original)
                new_values[attribute] = normalize_attribute_value(attributes.get(attribute))

        if not old_values and not new_values:
            return None

        if not is_snapshot:
            is_snapshot = next_version == 1 or next_version % self._config.snapshot_interval == 0

        if is_snapshot:
            new_values = {name: normalize_attribute_value(attributes[name]) for name in tracked if name in attributes}

        actor = record.actor_id if self._config.track_user else None
        version = self._store.insert(
            NewVersion(
                record_type=record_type,
                record_id=identity,
                version=next_version,
                is_snapshot=is_snapshot,
                old_values=old_values or None,
                new_values=new_values or None,
                user_id=str(actor) if actor is not None else None,
            )
        )

        if record.has_current_version_pointer:
            record.set_current_version(next_version)

        instance_logger(logger, record_type, identity).debug("Recorded version", version=next_version, is_snapshot=is_snapshot)
        return version

    def _handle_lock_timeout(self, record: TrackedRecord, exc: LockTimeoutError) -> None:
        pending = tuple(sorted(record.dirty_attributes()))
        instance_logger(logger, record.record_type, record.identity).error(
            "Failed to acquire version lock, history may be out of sync",
            lock_name=exc.name,
            wait_seconds=exc.wait_seconds,
            pending_attributes=list(pending),
        )
        self._events.emit(VersionSkipped(record_type=record.record_type, record_id=record.identity, pending_attributes=pending))
