# tests/property/core/test_writer_properties.py
"""Property-based tests for VersionWriter.

For any sequence of updates and rewinds on a record:
- version numbers are gap-free from 1
- every stored version rebuilds to the live state right after its write
- snapshots land on version 1, every interval multiple, and the first
  write after a rewind, and always carry the full attribute set
"""

from __future__ import annotations

from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from rewinder.core.history.navigator import RewindNavigator
from rewinder.core.history.reconstruct import HistoryReconstructor
from rewinder.core.history.store import VersionStore
from tests.fixtures.history import make_history_db, make_writer
from tests.fixtures.records import InMemoryRecord
from tests.property.conftest import ATTRIBUTE_NAMES, attribute_changes, attribute_states
from tests.property.settings import SLOW_SETTINGS

steps = st.lists(
    st.tuples(st.just("update"), attribute_changes) | st.tuples(st.just("rewind"), st.integers(min_value=1, max_value=40)),
    max_size=30,
)


@given(initial=attribute_states, operations=steps, snapshot_interval=st.integers(min_value=2, max_value=10))
@SLOW_SETTINGS
def test_every_version_rebuilds_to_live_state(
    initial: dict[str, Any],
    operations: list[tuple[str, Any]],
    snapshot_interval: int,
) -> None:
    store = VersionStore(make_history_db())
    writer = make_writer(store, snapshot_interval=snapshot_interval)
    reconstructor = HistoryReconstructor(store)
    navigator = RewindNavigator(store, reconstructor)

    record = InMemoryRecord(1).create(**initial)
    first = writer.record_change(record)
    assert first is not None
    expected: dict[int, dict[str, Any]] = {1: dict(record.values)}
    forced_snapshots: set[int] = set()
    rewound = False

    for kind, argument in operations:
        head = max(expected)
        if kind == "rewind":
            target = min(argument, head)
            navigator.go_to(record, target)
            assert record.values == expected[target]
            rewound = target != head
            continue

        version = writer.record_change(record.update(**argument))
        if version is None:
            assert all(record.values.get(name) == value for name, value in argument.items())
            continue
        assert version.version == head + 1
        expected[version.version] = dict(record.values)
        if rewound:
            forced_snapshots.add(version.version)
            rewound = False

    stored = store.list_instance_versions("invoice", record.identity)
    assert [v.version for v in stored] == list(range(1, max(expected) + 1))
    for version in stored:
        assert reconstructor.state_at("invoice", record.identity, version.version) == expected[version.version]
        should_snapshot = version.version == 1 or version.version % snapshot_interval == 0 or version.version in forced_snapshots
        assert version.is_snapshot == should_snapshot
        if version.is_snapshot:
            assert set(version.new_values or {}) == set(ATTRIBUTE_NAMES)
