"""Repository layer for version rows.

Handles the seam between SQLAlchemy rows (text identity, JSON text,
naive SQLite timestamps) and the strict contracts in
rewinder.contracts.versions. This is NOT a trust boundary - if the
history table holds bad data, we crash.
"""

from typing import Any

from sqlalchemy.engine import Row as SARow

from rewinder.contracts.enums import IdentityKind
from rewinder.contracts.identity import RecordIdentity
from rewinder.contracts.versions import Version, VersionStub
from rewinder.core._helpers import as_utc
from rewinder.core.canonical import decode_payload


def load_identity(row: SARow[Any]) -> RecordIdentity:
    """Rebuild a RecordIdentity from its stored text and kind."""
    return RecordIdentity(kind=IdentityKind(row.record_id_kind), value=row.record_id)


class VersionRepository:
    """Repository for full Version records (payload columns included)."""

    def __init__(self, user_id_column: str) -> None:
        self._user_id_column = user_id_column

    def load(self, row: SARow[Any]) -> Version:
        """Load Version from database row.

        Decodes JSON payloads and normalizes created_at to UTC. Crashes on
        invalid data.
        """
        return Version(
            version_id=row.id,
            record_type=row.record_type,
            record_id=load_identity(row),
            version=row.version,
            is_snapshot=bool(row.is_snapshot),
            created_at=as_utc(row.created_at),
            old_values=decode_payload(row.old_values_json),
            new_values=decode_payload(row.new_values_json),
            user_id=row._mapping[self._user_id_column],
        )


class VersionStubRepository:
    """Repository for payload-free VersionStub projections."""

    def load(self, row: SARow[Any]) -> VersionStub:
        return VersionStub(
            version_id=row.id,
            record_type=row.record_type,
            record_id=load_identity(row),
            version=row.version,
            is_snapshot=bool(row.is_snapshot),
            created_at=as_utc(row.created_at),
        )
