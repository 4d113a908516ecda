# src/rewinder/core/history/store.py
"""Persistence over the versions table.

VersionStore is CRUD and query only: it never decides what to record or
what to delete. Each public method runs in its own transaction.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from itertools import groupby
from typing import Any

from sqlalchemy import ColumnElement, and_, delete, func, select, update

from rewinder.contracts.identity import RecordIdentity
from rewinder.contracts.versions import InstanceHistory, NewVersion, Version
from rewinder.core._helpers import now
from rewinder.core.canonical import encode_payload
from rewinder.core.history.database import HistoryDB
from rewinder.core.history.repositories import VersionRepository, VersionStubRepository


class VersionStore:
    """Version rows for every tracked record type in one history database.

    Example:
        store = VersionStore(HistoryDB.in_memory())
        store.insert(NewVersion(...))
        store.list_instance_versions("invoice", RecordIdentity.from_key(42))
    """

    def __init__(self, db: HistoryDB) -> None:
        self._db = db
        self._versions = db.tables.versions
        self._user_id = db.tables.user_id
        self._version_repo = VersionRepository(db.schema.user_id_column)
        self._stub_repo = VersionStubRepository()

    @property
    def db(self) -> HistoryDB:
        return self._db

    def _instance_filter(self, record_type: str, identity: RecordIdentity) -> ColumnElement[bool]:
        t = self._versions
        return and_(
            t.c.record_type == record_type,
            t.c.record_id_kind == identity.kind.value,
            t.c.record_id == identity.value,
        )

    def _stub_columns(self) -> list[Any]:
        t = self._versions
        return [t.c.id, t.c.record_type, t.c.record_id, t.c.record_id_kind, t.c.version, t.c.is_snapshot, t.c.created_at]

    # === Writes ===

    def insert(self, new: NewVersion) -> Version:
        """Insert one version row in its own transaction.

        Raises:
            sqlalchemy.exc.IntegrityError: If (record_type, record_id, version)
                already exists
        """
        created_at = new.created_at or now()
        old_json = encode_payload(new.old_values)
        new_json = encode_payload(new.new_values)
        with self._db.connection() as conn:
            result = conn.execute(
                self._versions.insert().values(
                    {
                        "record_type": new.record_type,
                        "record_id": new.record_id.value,
                        "record_id_kind": new.record_id.kind.value,
                        "version": new.version,
                        "old_values_json": old_json,
                        "new_values_json": new_json,
                        "is_snapshot": new.is_snapshot,
                        self._user_id.name: new.user_id,
                        "created_at": created_at,
                    }
                )
            )
            version_id = result.inserted_primary_key[0]

        return Version(
            version_id=version_id,
            record_type=new.record_type,
            record_id=new.record_id,
            version=new.version,
            is_snapshot=new.is_snapshot,
            created_at=created_at,
            old_values=new.old_values or None,
            new_values=new.new_values or None,
            user_id=new.user_id,
        )

    def delete_ids(self, version_ids: Sequence[int], *, chunk_size: int) -> int:
        """Delete version rows by primary key, one transaction per chunk.

        A failure part-way leaves earlier chunks deleted; callers may simply
        re-run since each chunk is independent.

        Returns:
            Number of rows deleted
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        deleted = 0
        for start in range(0, len(version_ids), chunk_size):
            chunk = list(version_ids[start : start + chunk_size])
            with self._db.connection() as conn:
                result = conn.execute(delete(self._versions).where(self._versions.c.id.in_(chunk)))
                deleted += result.rowcount
        return deleted

    def update_instance(
        self,
        record_type: str,
        identity: RecordIdentity,
        *,
        created_at: datetime | None = None,
        user_id: str | None = None,
        versions: Iterable[int] | None = None,
    ) -> int:
        """Bulk update stored metadata for one instance's versions.

        Only metadata columns are writable: payloads and version numbers are
        immutable once recorded.

        Args:
            record_type: Type discriminator
            identity: Record identity
            created_at: New creation timestamp (None leaves it unchanged)
            user_id: New actor id (None leaves it unchanged)
            versions: Restrict to these version numbers (None means all)

        Returns:
            Number of rows updated
        """
        values: dict[str, Any] = {}
        if created_at is not None:
            values["created_at"] = created_at
        if user_id is not None:
            values[self._user_id.name] = user_id
        if not values:
            return 0

        condition = self._instance_filter(record_type, identity)
        if versions is not None:
            condition = and_(condition, self._versions.c.version.in_(list(versions)))
        with self._db.connection() as conn:
            result = conn.execute(update(self._versions).where(condition).values(values))
            return result.rowcount

    # === Reads ===

    def max_version(self, record_type: str, identity: RecordIdentity) -> int | None:
        """Highest stored version number for an instance (None without history)."""
        query = select(func.max(self._versions.c.version)).where(self._instance_filter(record_type, identity))
        with self._db.connection() as conn:
            value: int | None = conn.execute(query).scalar()
        return value

    def get_version(self, record_type: str, identity: RecordIdentity, version: int) -> Version | None:
        query = select(self._versions).where(
            self._instance_filter(record_type, identity),
            self._versions.c.version == version,
        )
        with self._db.connection() as conn:
            row = conn.execute(query).first()
        return self._version_repo.load(row) if row is not None else None

    def latest_snapshot(self, record_type: str, identity: RecordIdentity, *, at_or_before: int | None = None) -> Version | None:
        """Snapshot with the greatest version number, optionally bounded above."""
        t = self._versions
        query = select(t).where(self._instance_filter(record_type, identity), t.c.is_snapshot.is_(True))
        if at_or_before is not None:
            query = query.where(t.c.version <= at_or_before)
        query = query.order_by(t.c.version.desc()).limit(1)
        with self._db.connection() as conn:
            row = conn.execute(query).first()
        return self._version_repo.load(row) if row is not None else None

    def versions_between(
        self,
        record_type: str,
        identity: RecordIdentity,
        *,
        after: int,
        up_to: int | None = None,
    ) -> list[Version]:
        """Versions with after < version <= up_to, ascending."""
        t = self._versions
        query = select(t).where(self._instance_filter(record_type, identity), t.c.version > after)
        if up_to is not None:
            query = query.where(t.c.version <= up_to)
        query = query.order_by(t.c.version, t.c.id)
        with self._db.connection() as conn:
            rows = conn.execute(query).fetchall()
        return [self._version_repo.load(row) for row in rows]

    def list_instance_versions(self, record_type: str, identity: RecordIdentity) -> list[Version]:
        """Every stored version of an instance, oldest first."""
        return self.versions_between(record_type, identity, after=0)

    def instance_histories(self, record_type: str | None = None) -> list[InstanceHistory]:
        """Point-in-time read of every version stub, grouped by instance.

        Payload columns are not loaded. Rows inserted after the read are not
        seen by the caller.

        Args:
            record_type: Restrict to one type discriminator (None for all)
        """
        t = self._versions
        query = select(*self._stub_columns())
        if record_type is not None:
            query = query.where(t.c.record_type == record_type)
        query = query.order_by(t.c.record_type, t.c.record_id_kind, t.c.record_id, t.c.version, t.c.id)
        with self._db.connection() as conn:
            rows = conn.execute(query).fetchall()

        stubs = [self._stub_repo.load(row) for row in rows]
        histories: list[InstanceHistory] = []
        for (rtype, identity), group in groupby(stubs, key=lambda stub: stub.instance_key):
            histories.append(InstanceHistory(record_type=rtype, record_id=identity, versions=list(group)))
        return histories

    def count_by_type(self, record_type: str | None = None) -> dict[str, int]:
        """Stored version counts keyed by record type."""
        t = self._versions
        query = select(t.c.record_type, func.count()).group_by(t.c.record_type).order_by(t.c.record_type)
        if record_type is not None:
            query = query.where(t.c.record_type == record_type)
        with self._db.connection() as conn:
            rows = conn.execute(query).fetchall()
        return {row[0]: row[1] for row in rows}
