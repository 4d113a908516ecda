"""Dispatchers: where version writes run.

The writer algorithm is identical in every mode; dispatchers only decide
which thread executes it. Both return a Future so callers can treat the
two modes uniformly.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from types import TracebackType
from typing import Any, Protocol, TypeVar

from rewinder.contracts.config import WriterConfig
from rewinder.contracts.enums import DispatchMode

T = TypeVar("T")


class Dispatcher(Protocol):
    """Runs submitted callables and exposes their outcome as a Future."""

    @property
    def is_synchronous(self) -> bool:
        """True when submit() has finished the work before returning."""
        ...

    def submit(self, fn: Callable[..., T], /, *args: Any) -> Future[T]: ...

    def shutdown(self, wait: bool = True) -> None: ...


class SynchronousDispatcher:
    """Runs work inline on the calling thread.

    The returned Future is already resolved; an exception raised by the
    work is stored on it and re-raised by Future.result().
    """

    @property
    def is_synchronous(self) -> bool:
        return True

    def submit(self, fn: Callable[..., T], /, *args: Any) -> Future[T]:
        future: Future[T] = Future()
        try:
            future.set_result(fn(*args))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True) -> None:
        """No-op shutdown (no threads to stop)."""


class ThreadPoolDispatcher:
    """Runs work on a bounded worker pool.

    Usage:
        dispatcher = ThreadPoolDispatcher(max_workers=4)
        future = dispatcher.submit(writer.record_change, record)
        ...
        dispatcher.shutdown()  # waits for queued writes
    """

    def __init__(self, max_workers: int = 4, *, thread_name_prefix: str = "rewinder-writer") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._max_workers = max_workers
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)

    @property
    def is_synchronous(self) -> bool:
        return False

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def submit(self, fn: Callable[..., T], /, *args: Any) -> Future[T]:
        return self._pool.submit(fn, *args)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work.

        Args:
            wait: If True, block until queued writes have finished
        """
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> ThreadPoolDispatcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)


def build_dispatcher(config: WriterConfig) -> SynchronousDispatcher | ThreadPoolDispatcher:
    """Create the dispatcher selected by configuration."""
    if config.dispatch is DispatchMode.THREAD:
        return ThreadPoolDispatcher(max_workers=config.max_workers)
    return SynchronousDispatcher()
