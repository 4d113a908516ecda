# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- JSON-safe values (RFC 8785 compatible)
- Attribute states (what tracked records hold)
- Stored histories (version rows with snapshots and ages)

Usage:
    from tests.property.conftest import attribute_states, histories

    @given(history=histories())
    def test_prune_keeps_head(history) -> None:
        ...
"""

# =============================================================================
# Hypothesis Settings
# =============================================================================
#
# For standardized @settings decorators, import from tests.property.settings:
#   from tests.property.settings import STANDARD_SETTINGS, SLOW_SETTINGS
#
# Tiers: DETERMINISM (500), STANDARD (100), SLOW (50), QUICK (20)
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from hypothesis import strategies as st

# RFC 8785 (JCS) uses JavaScript-safe integers: -(2^53-1) to (2^53-1)
MAX_SAFE_INT = 2**53 - 1
MIN_SAFE_INT = -(2**53 - 1)


# =============================================================================
# Core JSON Strategies
# =============================================================================

# JSON-safe primitives. Floats stay below 2^53: RFC 8785 writes integral floats
# without an exponent, so larger ones would decode as out-of-range integers
json_primitives = (
    st.none()
    | st.booleans()
    | st.integers(min_value=MIN_SAFE_INT, max_value=MAX_SAFE_INT)
    | st.floats(min_value=-1e15, max_value=1e15, allow_nan=False)
    | st.text(max_size=100)
)

json_values = st.recursive(
    json_primitives,
    lambda children: (st.lists(children, max_size=10) | st.dictionaries(st.text(max_size=20), children, max_size=10)),
    max_leaves=50,
)


# =============================================================================
# Tracked Record Strategies
# =============================================================================

ATTRIBUTE_NAMES = ("amount", "status", "note")

# Values that survive a payload round trip unchanged
attribute_values = (
    st.none()
    | st.booleans()
    | st.integers(min_value=MIN_SAFE_INT, max_value=MAX_SAFE_INT)
    | st.text(max_size=30)
)

attribute_states = st.fixed_dictionaries({name: attribute_values for name in ATTRIBUTE_NAMES})

# Partial updates; may repeat current values (the writer must skip no-ops)
attribute_changes = st.dictionaries(st.sampled_from(ATTRIBUTE_NAMES), attribute_values, max_size=len(ATTRIBUTE_NAMES))


# =============================================================================
# Stored History Strategies
# =============================================================================


@dataclass(frozen=True)
class GeneratedVersion:
    """One version row plus the full state it represents."""

    version: int
    is_snapshot: bool
    new_values: dict[str, Any]
    state: dict[str, Any]
    age_days: int


@st.composite
def histories(draw: st.DrawFn, *, max_versions: int = 25) -> list[GeneratedVersion]:
    """Version rows for one instance, oldest first.

    Version 1 is always a snapshot. Later snapshots carry the full state,
    diffs carry one to three changed attributes. Ages never increase with
    the version number.
    """
    count = draw(st.integers(min_value=1, max_value=max_versions))
    ages = sorted(draw(st.lists(st.integers(min_value=0, max_value=400), min_size=count, max_size=count)), reverse=True)

    state = draw(attribute_states)
    rows = [GeneratedVersion(version=1, is_snapshot=True, new_values=dict(state), state=dict(state), age_days=ages[0])]
    for version in range(2, count + 1):
        changes = draw(st.dictionaries(st.sampled_from(ATTRIBUTE_NAMES), attribute_values, min_size=1))
        state = {**state, **changes}
        is_snapshot = draw(st.sampled_from((False, False, False, True)))
        rows.append(
            GeneratedVersion(
                version=version,
                is_snapshot=is_snapshot,
                new_values=dict(state) if is_snapshot else changes,
                state=dict(state),
                age_days=ages[version - 1],
            )
        )
    return rows


def created_at_for(row: GeneratedVersion, now: datetime) -> datetime:
    return now - timedelta(days=row.age_days)
