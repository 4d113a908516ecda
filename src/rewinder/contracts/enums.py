"""Kinds and modes used across subsystem boundaries."""

from enum import StrEnum


class IdentityKind(StrEnum):
    """Shape of a tracked record's primary key.

    Stored in the database (versions.record_id_kind).
    """

    INTEGER = "integer"
    UUID = "uuid"
    ULID = "ulid"
    STRING = "string"


class DispatchMode(StrEnum):
    """How the mutation trigger hands work to the version writer."""

    SYNC = "sync"
    THREAD = "thread"


class LockBackend(StrEnum):
    """Which lock provider serializes writers for one record instance."""

    MEMORY = "memory"
    DATABASE = "database"
