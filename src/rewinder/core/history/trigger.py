"""Mutation trigger: hands completed mutations to the writer via a dispatcher."""

from concurrent.futures import Future

from rewinder.contracts.records import TrackedRecord
from rewinder.contracts.versions import Version
from rewinder.core.dispatch import Dispatcher
from rewinder.core.history.writer import VersionWriter
from rewinder.core.logging import get_logger

logger = get_logger(__name__)


class VersioningTrigger:
    """Submits VersionWriter.record_change for each completed mutation.

    In synchronous mode storage errors propagate to the caller. On a
    worker pool there is no caller left to raise into, so failures are
    logged and remain available on the returned Future.
    """

    def __init__(self, writer: VersionWriter, dispatcher: Dispatcher) -> None:
        self._writer = writer
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    def notify(self, record: TrackedRecord) -> "Future[Version | None]":
        future = self._dispatcher.submit(self._writer.record_change, record)
        if self._dispatcher.is_synchronous:
            # Re-raise storage failures on the mutating thread
            future.result()
        else:
            future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: "Future[Version | None]") -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Background version write failed", error=str(exc), error_type=type(exc).__name__)

    def close(self, wait: bool = True) -> None:
        """Shut down the dispatcher, waiting for queued writes by default."""
        self._dispatcher.shutdown(wait=wait)
