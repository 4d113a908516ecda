"""Common helper functions shared by history, locking and retention modules."""

import uuid
from datetime import UTC, datetime


def now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def generate_token() -> str:
    """Generate a unique lock owner token (UUID4 hex)."""
    return uuid.uuid4().hex


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive timestamp read back from the store.

    SQLite drops tzinfo on DateTime(timezone=True) columns. Every timestamp
    we write is UTC, so naive values read back are UTC too.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
