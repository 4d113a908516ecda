# src/rewinder/core/canonical.py
"""
Attribute value normalization and canonical JSON for version payloads.

Two-phase approach:
1. Normalize: Convert date/time, Decimal, UUID, enum and bytes values to
   JSON-safe primitives (our code)
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

Date-like values are stored in one fixed textual format so that
reconstructed state compares equal no matter which driver produced it.

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
"""

import base64
import json
import math
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

import rfc8785

# Fixed textual format for date/time attribute values in history payloads
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_attribute_value(value: Any) -> Any:
    """Convert a single attribute value to a JSON-safe primitive.

    Args:
        value: Attribute value as the host record holds it

    Returns:
        JSON-serializable primitive (datetime/date as DATETIME_FORMAT text)

    Raises:
        ValueError: If value is a non-finite float or Decimal
    """
    # Enum first: StrEnum/IntEnum members would otherwise pass as str/int
    if isinstance(value, Enum):
        return normalize_attribute_value(value.value)

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"Cannot store non-finite float: {value}. Use None for missing values, not NaN.")
        return value

    # bool is a subclass of int; both pass through unchanged
    if value is None or isinstance(value, str | int | bool):
        return value

    # datetime is a subclass of date - check it first
    if isinstance(value, datetime):
        return value.strftime(DATETIME_FORMAT)
    if isinstance(value, date):
        return datetime.combine(value, time()).strftime(DATETIME_FORMAT)
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")

    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Cannot store non-finite Decimal: {value}. Use None for missing values, not NaN/Infinity.")
        return str(value)

    if isinstance(value, uuid.UUID):
        return str(value)

    if isinstance(value, bytes):
        return {"__bytes__": base64.b64encode(value).decode("ascii")}

    if isinstance(value, dict):
        return {str(k): normalize_attribute_value(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [normalize_attribute_value(v) for v in value]

    raise TypeError(f"Cannot store attribute value of type {type(value).__name__}: {value!r}")


def restore_attribute_value(value: Any, python_type: type) -> Any:
    """Invert normalize_attribute_value for a column of known Python type.

    Used when reconstructed state is written back onto a live record.
    Values that do not need conversion are returned unchanged.
    """
    if value is None:
        return None
    if python_type is bytes and isinstance(value, dict) and "__bytes__" in value:
        return base64.b64decode(value["__bytes__"])
    if not isinstance(value, str):
        return value
    if python_type is datetime:
        return datetime.strptime(value, DATETIME_FORMAT)
    if python_type is date:
        return datetime.strptime(value, DATETIME_FORMAT).date()
    if python_type is time:
        return datetime.strptime(value, "%H:%M:%S").time()
    if python_type is Decimal:
        return Decimal(value)
    if python_type is uuid.UUID:
        return uuid.UUID(value)
    if issubclass(python_type, Enum):
        return python_type(value)
    return value


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for a version payload.

    Args:
        obj: Attribute mapping (or any JSON-safe structure)

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = normalize_attribute_value(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def encode_payload(values: dict[str, Any] | None) -> str | None:
    """Serialize an attribute mapping for storage; empty or None stores NULL."""
    if not values:
        return None
    return canonical_json(values)


def decode_payload(text: str | None) -> dict[str, Any] | None:
    """Parse a stored attribute mapping.

    Stored payloads are OUR data: anything but a JSON object is corruption.
    """
    if text is None:
        return None
    parsed = json.loads(text)
    if type(parsed) is not dict:
        raise ValueError(f"version payload must decode to dict, got {type(parsed).__name__}")
    return parsed
