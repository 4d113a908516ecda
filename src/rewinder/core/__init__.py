# src/rewinder/core/__init__.py
"""Core infrastructure: History, Retention, Locking, Dispatch, Configuration, Logging."""

from rewinder.core.canonical import (
    DATETIME_FORMAT,
    canonical_json,
    normalize_attribute_value,
)
from rewinder.core.config import (
    HistoryStoreSettings,
    LockSettings,
    LoggingSettings,
    PruneSettings,
    RewinderSettings,
    VersioningSettings,
    load_settings,
)
from rewinder.core.dispatch import (
    Dispatcher,
    SynchronousDispatcher,
    ThreadPoolDispatcher,
    build_dispatcher,
)
from rewinder.core.events import (
    EventBus,
    EventBusProtocol,
    HistoryEvent,
    NullEventBus,
)
from rewinder.core.history import (
    HistoryDB,
    HistoryReconstructor,
    RewindNavigator,
    VersioningTrigger,
    VersionStore,
    VersionWriter,
)
from rewinder.core.locking import (
    DatabaseLockProvider,
    InProcessLockProvider,
    LockProvider,
    build_lock_provider,
)
from rewinder.core.logging import configure_logging, get_logger, instance_logger
from rewinder.core.retention import PruneEngine, PrunePolicy, PruneResult

__all__ = [
    "DATETIME_FORMAT",
    "DatabaseLockProvider",
    "Dispatcher",
    "EventBus",
    "EventBusProtocol",
    "HistoryDB",
    "HistoryEvent",
    "HistoryReconstructor",
    "HistoryStoreSettings",
    "InProcessLockProvider",
    "LockProvider",
    "LockSettings",
    "LoggingSettings",
    "NullEventBus",
    "PruneEngine",
    "PrunePolicy",
    "PruneResult",
    "PruneSettings",
    "RewindNavigator",
    "RewinderSettings",
    "SynchronousDispatcher",
    "ThreadPoolDispatcher",
    "VersionStore",
    "VersionWriter",
    "VersioningSettings",
    "VersioningTrigger",
    "build_dispatcher",
    "build_lock_provider",
    "canonical_json",
    "configure_logging",
    "get_logger",
    "instance_logger",
    "load_settings",
    "normalize_attribute_value",
]
