# tests/fixtures/__init__.py
"""Shared pytest fixtures for rewinder tests.

Available fixtures (imported by tests/conftest.py):
- history_db, store, reconstructor, locks, writer, navigator: tests.fixtures.history
"""

from tests.fixtures.history import make_history_db, make_writer
from tests.fixtures.records import InMemoryRecord

__all__ = [
    "InMemoryRecord",
    "make_history_db",
    "make_writer",
]
