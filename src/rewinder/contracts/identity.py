"""Polymorphic record identity.

Tracked records may be keyed by integers, UUIDs, ULIDs or arbitrary
strings. The history table stores every key as text alongside its kind,
so an integer key 1 and a string key "1" never collide.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Any

from rewinder.contracts.enums import IdentityKind

# Crockford base32, 26 characters, first character limited to 0-7 (48-bit timestamp)
_ULID_PATTERN = re.compile(r"^[0-7][0-9A-HJKMNP-TV-Z]{25}$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class RecordIdentity:
    """Identity of one tracked record, independent of its type discriminator.

    Equality covers both kind and value. Callers group history by the
    (record_type, RecordIdentity) pair, never by the value alone.
    """

    kind: IdentityKind
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.kind, IdentityKind):
            raise TypeError(f"kind must be IdentityKind, got {type(self.kind).__name__}: {self.kind!r}")
        if not self.value:
            raise ValueError("RecordIdentity value must be non-empty")

    @classmethod
    def from_key(cls, key: Any) -> "RecordIdentity":
        """Classify a host primary key.

        Args:
            key: int, uuid.UUID, or str primary key

        Returns:
            RecordIdentity with the detected kind

        Raises:
            TypeError: If key is not an int, UUID or str (bool is rejected)
        """
        if isinstance(key, RecordIdentity):
            return key
        if isinstance(key, bool):
            raise TypeError("bool is not a valid record key")
        if isinstance(key, int):
            return cls(IdentityKind.INTEGER, str(key))
        if isinstance(key, uuid.UUID):
            return cls(IdentityKind.UUID, str(key))
        if isinstance(key, str):
            if _ULID_PATTERN.match(key):
                return cls(IdentityKind.ULID, key.upper())
            try:
                parsed = uuid.UUID(key)
            except ValueError:
                return cls(IdentityKind.STRING, key)
            # Only the canonical hyphenated form counts as a UUID key
            if str(parsed) == key.lower():
                return cls(IdentityKind.UUID, key.lower())
            return cls(IdentityKind.STRING, key)
        raise TypeError(f"Unsupported record key type: {type(key).__name__}")

    @property
    def key(self) -> int | str:
        """The identity as the host would spell it (int for integer keys)."""
        if self.kind is IdentityKind.INTEGER:
            return int(self.value)
        return self.value

    def __str__(self) -> str:
        return self.value
