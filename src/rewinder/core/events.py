"""Delivery of history events to host subscribers.

The writer emits VersionCreated and VersionSkipped, the prune engine emits
PruneCompleted. Hosts subscribe per event type (cache invalidation on
VersionCreated, alerting on VersionSkipped) or to every history event at
once (audit feeds). Delivery is synchronous on the emitting thread, so
with a ThreadPoolDispatcher handlers run on writer threads.
"""

from collections.abc import Callable
from typing import Protocol, TypeVar

from rewinder.contracts.events import PruneCompleted, VersionCreated, VersionSkipped

HistoryEvent = VersionCreated | VersionSkipped | PruneCompleted

HISTORY_EVENT_TYPES: tuple[type[HistoryEvent], ...] = (VersionCreated, VersionSkipped, PruneCompleted)

E = TypeVar("E", VersionCreated, VersionSkipped, PruneCompleted)


class EventBusProtocol(Protocol):
    """What the writer and prune engine need from a bus."""

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None: ...

    def subscribe_all(self, handler: Callable[[HistoryEvent], None]) -> None: ...

    def emit(self, event: HistoryEvent) -> None: ...


class EventBus:
    """Synchronous bus for history events.

    Type-specific handlers run first, in subscription order, then the
    handlers registered with subscribe_all. A handler exception propagates
    to the emitter and skips the remaining handlers.

    Example:
        bus = EventBus()
        bus.subscribe(VersionCreated, lambda e: cache.forget(e.record_type, e.record_id))
        writer = VersionWriter(store, locks, config, event_bus=bus)
    """

    def __init__(self) -> None:
        self._by_type: dict[type[HistoryEvent], list[Callable[[HistoryEvent], None]]] = {
            event_type: [] for event_type in HISTORY_EVENT_TYPES
        }
        self._catch_all: list[Callable[[HistoryEvent], None]] = []

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Call handler for every emitted event of exactly event_type.

        Raises:
            TypeError: event_type is not a history event
        """
        if event_type not in self._by_type:
            raise TypeError(f"{event_type.__name__} is not a history event; expected one of {_type_names()}")
        self._by_type[event_type].append(handler)  # type: ignore[arg-type]

    def subscribe_all(self, handler: Callable[[HistoryEvent], None]) -> None:
        """Call handler for every history event."""
        self._catch_all.append(handler)

    def emit(self, event: HistoryEvent) -> None:
        handlers = self._by_type.get(type(event))
        if handlers is None:
            raise TypeError(f"Cannot emit {type(event).__name__}; expected one of {_type_names()}")
        for handler in (*handlers, *self._catch_all):
            handler(event)


class NullEventBus:
    """Bus used when the host passes none: accepts subscriptions, never delivers.

    Not an EventBus subclass.
    """

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        pass

    def subscribe_all(self, handler: Callable[[HistoryEvent], None]) -> None:
        pass

    def emit(self, event: HistoryEvent) -> None:
        pass


def _type_names() -> str:
    return ", ".join(event_type.__name__ for event_type in HISTORY_EVENT_TYPES)
