# src/rewinder/core/history/orm.py
"""SQLAlchemy ORM integration.

Declare versioned models with the Versioned mixin and attach a
VersioningTrigger to a session (or sessionmaker):

    class Invoice(Versioned, Base):
        __tablename__ = "invoices"
        __rewind_exclude__ = ("updated_at",)
        __rewind_soft_delete__ = "deleted_at"

        id: Mapped[int] = mapped_column(primary_key=True)
        total: Mapped[Decimal]
        current_version: Mapped[int | None]
        deleted_at: Mapped[datetime | None]

    tracker = track_session(SessionLocal, trigger, actor=lambda: current_user_id.get())

Changes are captured in after_flush (while attribute history is still
intact) and handed to the trigger in after_commit. A rollback discards
them. The current_version pointer is written with a Core UPDATE and
set_committed_value, so it never shows up as a pending ORM change and
never re-triggers versioning.

With a ThreadPoolDispatcher the writer runs off the session's thread and
only the row is updated. Instances that outlive the commit
(expire_on_commit=False) keep their old current_version until the host
refreshes or expires them.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from sqlalchemy import ColumnElement, and_, event, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Mapper, Session
from sqlalchemy.orm.attributes import set_committed_value

from rewinder.contracts.identity import RecordIdentity
from rewinder.core.canonical import restore_attribute_value
from rewinder.core.history.trigger import VersioningTrigger
from rewinder.core.logging import get_logger, instance_logger

logger = get_logger(__name__)

CURRENT_VERSION_ATTRIBUTE = "current_version"

_PENDING_KEY = "rewinder.pending"


class Versioned:
    """Mixin marking a mapped class as versioned.

    Class-level options:
        __rewind_exclude__: attributes never versioned
        __rewind_soft_delete__: soft-delete marker column, if any
        __rewind_type__: record type discriminator (defaults to the table name)

    A mapped ``current_version`` column, when present, is kept pointing at
    the version the row currently reflects.
    """

    __rewind_exclude__: ClassVar[tuple[str, ...]] = ()
    __rewind_soft_delete__: ClassVar[str | None] = None
    __rewind_type__: ClassVar[str | None] = None


def _keep_previous_value(target: Any, value: Any, oldvalue: Any, initiator: Any) -> None:
    """No-op set listener; registering it with active_history loads old values."""


@event.listens_for(Versioned, "mapper_configured", propagate=True)
def _enable_active_history(mapper: Mapper[Any], class_: type) -> None:
    # Without active history, assigning to an expired attribute records no
    # previous value and the version's old_values would be lost
    for prop in mapper.column_attrs:
        event.listen(getattr(class_, prop.key), "set", _keep_previous_value, active_history=True)


@dataclass(eq=False)
class OrmRecord:
    """TrackedRecord view of a mapped instance, frozen at capture time."""

    instance: Any
    record_type: str
    identity: RecordIdentity
    primary_key: Any
    exists: bool
    was_recently_created: bool
    excluded_attributes: frozenset[str]
    soft_delete_column: str | None
    has_current_version_pointer: bool
    current_version: int | None
    actor_id: int | str | None
    bind: Engine
    mapper: Mapper[Any]
    owner_thread: int
    attributes: dict[str, Any] = field(default_factory=dict)
    originals: dict[str, Any] = field(default_factory=dict)
    dirty: dict[str, Any] = field(default_factory=dict)

    def dirty_attributes(self) -> dict[str, Any]:
        return dict(self.dirty)

    def all_attributes(self) -> dict[str, Any]:
        return dict(self.attributes)

    def original_value(self, name: str) -> Any:
        return self.originals.get(name)

    def set_current_version(self, version: int) -> None:
        column = self.mapper.columns[CURRENT_VERSION_ATTRIBUTE]
        with self.bind.begin() as conn:
            conn.execute(update(self.mapper.local_table).where(self._pk_clause()).values({column: version}))
        self.current_version = version
        # The instance belongs to its session; other threads only touch the row
        if threading.get_ident() == self.owner_thread:
            set_committed_value(self.instance, CURRENT_VERSION_ATTRIBUTE, version)

    def apply_attributes(self, values: dict[str, Any]) -> None:
        """Write reconstructed state back to the row without versioning it."""
        mapper = self.mapper
        restored: dict[str, Any] = {}
        for name, value in values.items():
            # Columns dropped since the version was recorded are skipped
            if name not in mapper.columns or name in self.excluded_attributes:
                continue
            column = mapper.columns[name]
            try:
                python_type = column.type.python_type
            except NotImplementedError:
                restored[name] = value
            else:
                restored[name] = restore_attribute_value(value, python_type)
        if not restored:
            return

        with self.bind.begin() as conn:
            conn.execute(
                update(mapper.local_table)
                .where(self._pk_clause())
                .values({mapper.columns[name]: value for name, value in restored.items()})
            )
        for name, value in restored.items():
            set_committed_value(self.instance, name, value)
            self.attributes[name] = value

    def _pk_clause(self) -> ColumnElement[bool]:
        (pk_column,) = self.mapper.primary_key
        return and_(pk_column == self.primary_key)


def _record_type(mapper: Mapper[Any]) -> str:
    return mapper.class_.__rewind_type__ or mapper.local_table.name


def _primary_key(mapper: Mapper[Any], instance: Any) -> Any:
    key = mapper.primary_key_from_instance(instance)
    if len(key) != 1 or key[0] is None:
        raise TypeError(f"{mapper.class_.__name__} must have a single-column primary key with a value to be versioned")
    return key[0]


def capture_record(
    session: Session,
    instance: Versioned,
    *,
    created: bool = False,
    deleted: bool = False,
    actor_id: int | str | None = None,
) -> OrmRecord:
    """Capture a flushed change to instance.

    Must run before flush history is reset (after_flush, not
    after_flush_postexec). Unloaded attributes of deleted rows are not captured.
    """
    state = sa_inspect(instance)
    mapper = state.mapper
    cls = type(instance)
    primary_key = _primary_key(mapper, instance)

    attributes: dict[str, Any] = {}
    originals: dict[str, Any] = {}
    dirty: dict[str, Any] = {}
    for prop in mapper.column_attrs:
        key = prop.key
        if key not in state.dict:
            if deleted:
                continue
            # Expired after an earlier commit: reload (SQL is allowed inside after_flush)
            getattr(instance, key)
        value = state.dict[key]
        history = state.attrs[key].history
        attributes[key] = value
        if created:
            originals[key] = None
        elif history.deleted:
            originals[key] = history.deleted[0]
        else:
            originals[key] = value
        if history.added:
            dirty[key] = value

    return OrmRecord(
        instance=instance,
        record_type=_record_type(mapper),
        identity=RecordIdentity.from_key(primary_key),
        primary_key=primary_key,
        exists=not deleted,
        was_recently_created=created,
        excluded_attributes=frozenset(cls.__rewind_exclude__) | {CURRENT_VERSION_ATTRIBUTE},
        soft_delete_column=cls.__rewind_soft_delete__,
        has_current_version_pointer=not deleted and CURRENT_VERSION_ATTRIBUTE in mapper.columns,
        current_version=state.dict.get(CURRENT_VERSION_ATTRIBUTE),
        actor_id=actor_id,
        bind=session.get_bind(mapper=mapper).engine,
        mapper=mapper,
        owner_thread=threading.get_ident(),
        attributes=attributes,
        originals=originals,
        dirty={} if deleted else dirty,
    )


def record_for(session: Session, instance: Versioned, *, actor_id: int | str | None = None) -> OrmRecord:
    """Adapter for a persistent instance outside a flush (navigation, reads).

    Loads every column attribute; the record reports no pending changes.
    """
    return capture_record(session, instance, actor_id=actor_id)


class SessionTracker:
    """Session event listeners feeding a VersioningTrigger.

    Args:
        target: Session instance, sessionmaker, or Session subclass
        trigger: Receives one OrmRecord per versioned change after commit
        actor: Returns the acting user id at flush time (None if unknown)
    """

    def __init__(
        self,
        target: Any,
        trigger: VersioningTrigger,
        *,
        actor: Callable[[], int | str | None] | None = None,
    ) -> None:
        self._target = target
        self._trigger = trigger
        self._actor = actor
        self._listeners: list[tuple[str, Callable[..., None]]] = [
            ("after_flush", self._after_flush),
            ("after_commit", self._after_commit),
            ("after_rollback", self._after_rollback),
        ]
        for name, fn in self._listeners:
            event.listen(target, name, fn)

    def _after_flush(self, session: Session, flush_context: Any) -> None:
        actor_id = self._actor() if self._actor is not None else None
        pending: list[OrmRecord] = session.info.setdefault(_PENDING_KEY, [])
        for instance in session.new:
            if isinstance(instance, Versioned):
                pending.append(capture_record(session, instance, created=True, actor_id=actor_id))
        for instance in session.dirty:
            if isinstance(instance, Versioned) and session.is_modified(instance, include_collections=False):
                pending.append(capture_record(session, instance, actor_id=actor_id))
        for instance in session.deleted:
            if isinstance(instance, Versioned):
                pending.append(capture_record(session, instance, deleted=True, actor_id=actor_id))

    def _after_commit(self, session: Session) -> None:
        pending: list[OrmRecord] = session.info.pop(_PENDING_KEY, [])
        failures: list[Exception] = []
        for record in pending:
            try:
                self._trigger.notify(record)
            except Exception as exc:
                instance_logger(logger, record.record_type, record.identity).error(
                    "Version write failed", error=str(exc), error_type=type(exc).__name__
                )
                failures.append(exc)
        # Every committed change gets its write attempt before the first failure surfaces
        if failures:
            raise failures[0]

    def _after_rollback(self, session: Session) -> None:
        discarded = session.info.pop(_PENDING_KEY, [])
        if discarded:
            logger.debug("Discarded uncommitted changes", count=len(discarded))

    def remove(self) -> None:
        """Detach the listeners from the target."""
        for name, fn in self._listeners:
            event.remove(self._target, name, fn)


def track_session(
    target: Any,
    trigger: VersioningTrigger,
    *,
    actor: Callable[[], int | str | None] | None = None,
) -> SessionTracker:
    """Version every committed change to Versioned instances made through target."""
    return SessionTracker(target, trigger, actor=actor)
