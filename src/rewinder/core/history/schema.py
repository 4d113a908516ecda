# src/rewinder/core/history/schema.py
"""SQLAlchemy table definitions for version history.

Uses SQLAlchemy Core (not ORM) for explicit control over queries and
compatibility with multiple database backends.

Table and actor column names are configurable, so tables are built from
an explicit HistorySchema descriptor instead of living at module level.
"""

from dataclasses import dataclass

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

from rewinder.contracts.config import HistorySchema

RECORD_TYPE_LENGTH = 255
RECORD_ID_LENGTH = 255
# "rewinder-version-lock-{record_type}-{record_id}"
LOCK_NAME_LENGTH = 23 + RECORD_TYPE_LENGTH + RECORD_ID_LENGTH


@dataclass(frozen=True)
class HistoryTables:
    """Bound table objects for one HistorySchema."""

    schema: HistorySchema
    metadata: MetaData
    versions: Table
    locks: Table

    @property
    def user_id(self) -> Column[str]:
        """The actor column, whatever it is called in this deployment."""
        return self.versions.c[self.schema.user_id_column]


def build_tables(schema: HistorySchema) -> HistoryTables:
    """Build metadata and tables for a schema descriptor.

    Args:
        schema: Table/column naming resolved from configuration

    Returns:
        HistoryTables holding a fresh MetaData
    """
    metadata = MetaData()

    versions = Table(
        schema.table_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("record_type", String(RECORD_TYPE_LENGTH), nullable=False),
        # Identity stored as text plus its kind: integer 1 and string "1" are distinct records
        Column("record_id", String(RECORD_ID_LENGTH), nullable=False),
        Column("record_id_kind", String(16), nullable=False),
        Column("version", Integer, nullable=False),
        # Canonical JSON (RFC 8785) attribute mappings, NULL when empty
        Column("old_values_json", Text),
        Column("new_values_json", Text),
        Column("is_snapshot", Boolean, nullable=False, default=False),
        Column(schema.user_id_column, String(64)),
        Column("created_at", DateTime(timezone=True), nullable=False),
        # Gap-free numbering is enforced by the writer lock; this catches lock failures
        UniqueConstraint("record_type", "record_id_kind", "record_id", "version"),
        Index(f"ix_{schema.table_name}_instance", "record_type", "record_id_kind", "record_id"),
        Index(f"ix_{schema.table_name}_created_at", "created_at"),
    )

    locks = Table(
        schema.lock_table_name,
        metadata,
        Column("name", String(LOCK_NAME_LENGTH), primary_key=True),
        Column("owner", String(64), nullable=False),
        Column("expires_at", DateTime(timezone=True), nullable=False),
    )

    return HistoryTables(schema=schema, metadata=metadata, versions=versions, locks=locks)
