"""History: versioned snapshots and diffs for tracked records.

Primary API:
    VersionWriter - Records one version per completed mutation
    HistoryReconstructor - Rebuilds attribute state at any stored version
    RewindNavigator - Moves live records through their history
    VersionStore - Persistence over the versions table
    HistoryDB - Database connection management

Integration:
    VersioningTrigger - Hands mutations to the writer through a dispatcher
    Versioned, track_session - SQLAlchemy ORM integration (rewinder.core.history.orm)
"""

from rewinder.core.history.database import HistoryDB
from rewinder.core.history.navigator import RewindNavigator
from rewinder.core.history.reconstruct import HistoryReconstructor
from rewinder.core.history.schema import HistoryTables, build_tables
from rewinder.core.history.store import VersionStore
from rewinder.core.history.trigger import VersioningTrigger
from rewinder.core.history.writer import VersionWriter, lock_name, trackable_attributes

__all__ = [
    "HistoryDB",
    "HistoryReconstructor",
    "HistoryTables",
    "RewindNavigator",
    "VersionStore",
    "VersionWriter",
    "VersioningTrigger",
    "build_tables",
    "lock_name",
    "trackable_attributes",
]
