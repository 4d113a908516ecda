# tests/fixtures/records.py
"""In-memory host record for driving the writer and navigator.

InMemoryRecord plays the host application's role: each create(),
update(), soft_delete() or delete() call describes ONE completed
mutation, and the record then answers the TrackedRecord questions about
that mutation until the next call.
"""

from __future__ import annotations

from typing import Any

from rewinder.contracts.identity import RecordIdentity


class InMemoryRecord:
    """TrackedRecord / RewindableRecord backed by a plain dict."""

    def __init__(
        self,
        key: int | str,
        *,
        record_type: str = "invoice",
        excluded: tuple[str, ...] = (),
        soft_delete_column: str | None = None,
        has_pointer: bool = True,
        actor_id: int | str | None = None,
    ) -> None:
        self.record_type = record_type
        self.identity = RecordIdentity.from_key(key)
        self.exists = False
        self.was_recently_created = False
        self.excluded_attributes = frozenset(excluded)
        self.soft_delete_column = soft_delete_column
        self.has_current_version_pointer = has_pointer
        self.current_version: int | None = None
        self.actor_id = actor_id
        self.values: dict[str, Any] = {}
        self.pointer_writes = 0
        self._originals: dict[str, Any] = {}
        self._dirty: set[str] = set()

    # === Host mutations ===

    def create(self, **values: Any) -> InMemoryRecord:
        self.values = dict(values)
        self._originals = {}
        self._dirty = set(values)
        self.exists = True
        self.was_recently_created = True
        return self

    def update(self, **changes: Any) -> InMemoryRecord:
        self._originals = dict(self.values)
        self._dirty = {name for name, value in changes.items() if self.values.get(name) != value}
        self.values.update(changes)
        self.was_recently_created = False
        return self

    def soft_delete(self, marker: Any) -> InMemoryRecord:
        assert self.soft_delete_column is not None
        return self.update(**{self.soft_delete_column: marker})

    def delete(self) -> InMemoryRecord:
        self._originals = dict(self.values)
        self._dirty = set()
        self.exists = False
        self.was_recently_created = False
        return self

    # === TrackedRecord ===

    def dirty_attributes(self) -> dict[str, Any]:
        return {name: self.values[name] for name in self._dirty}

    def all_attributes(self) -> dict[str, Any]:
        return dict(self.values)

    def original_value(self, name: str) -> Any:
        return self._originals.get(name)

    def set_current_version(self, version: int) -> None:
        self.current_version = version
        self.pointer_writes += 1

    # === RewindableRecord ===

    def apply_attributes(self, values: dict[str, Any]) -> None:
        self.values.update(values)
        self._originals = {}
        self._dirty = set()
