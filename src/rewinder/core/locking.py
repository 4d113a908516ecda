"""Named, leased locks serializing writers per record instance.

Two providers share one protocol:

- InProcessLockProvider: a Condition-guarded lease table, for single-process
  deployments and tests.
- DatabaseLockProvider: lease rows in the history database, shared by every
  process pointed at the same store.

Leases expire after lease_seconds so a crashed holder cannot wedge an
instance forever. Releasing a lease that expired and was taken over by
another writer is a no-op.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from types import TracebackType
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from rewinder.contracts.config import LockConfig
from rewinder.contracts.enums import LockBackend
from rewinder.contracts.errors import LockTimeoutError
from rewinder.core._helpers import generate_token, now
from rewinder.core.logging import get_logger

if TYPE_CHECKING:
    from rewinder.core.history.database import HistoryDB

logger = get_logger(__name__)


class LockHandle(Protocol):
    """A held lease. release() is idempotent."""

    @property
    def name(self) -> str: ...

    def release(self) -> None: ...


class LockProvider(Protocol):
    """Acquires named leases with a bounded wait."""

    def acquire(self, name: str, *, wait_seconds: float, lease_seconds: float) -> LockHandle:
        """Acquire a lease on name.

        Raises:
            LockTimeoutError: If the lease is not obtained within wait_seconds
        """
        ...


class _Lease:
    """Handle returned by both providers."""

    def __init__(self, name: str, token: str, releaser: Callable[[str, str], None]) -> None:
        self._name = name
        self._token = token
        self._releaser = releaser
        self._released = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def token(self) -> str:
        return self._token

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._releaser(self._name, self._token)

    def __enter__(self) -> _Lease:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()


class InProcessLockProvider:
    """Lease table guarded by a threading.Condition.

    Waiters are woken on release and re-check on lease expiry, so a lease
    abandoned by a dead thread frees up after lease_seconds.

    Args:
        clock: Monotonic clock in seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._condition = threading.Condition()
        # name -> (owner token, expiry on self._clock)
        self._leases: dict[str, tuple[str, float]] = {}

    def acquire(self, name: str, *, wait_seconds: float, lease_seconds: float) -> _Lease:
        token = generate_token()
        deadline = self._clock() + wait_seconds
        with self._condition:
            while True:
                current = self._clock()
                held = self._leases.get(name)
                if held is None or held[1] <= current:
                    self._leases[name] = (token, current + lease_seconds)
                    return _Lease(name, token, self._release)
                if current >= deadline:
                    raise LockTimeoutError(name, wait_seconds)
                self._condition.wait(timeout=min(deadline, held[1]) - current)

    def _release(self, name: str, token: str) -> None:
        with self._condition:
            held = self._leases.get(name)
            if held is not None and held[0] == token:
                del self._leases[name]
                self._condition.notify_all()

    def is_held(self, name: str) -> bool:
        """Whether an unexpired lease exists for name."""
        with self._condition:
            held = self._leases.get(name)
            return held is not None and held[1] > self._clock()


class DatabaseLockProvider:
    """Lease rows in the lock table of a HistoryDB.

    Acquisition is one of two single-statement transactions:
    take over an expired row (UPDATE ... WHERE expires_at <= now), or
    claim a free name (INSERT, primary key violation means someone holds it).
    Contended acquisitions poll until the wait deadline.

    Args:
        db: History database holding the lock table
        poll_interval_seconds: Delay between acquisition attempts
        clock: UTC wall clock used for lease expiry (shared by all processes)
        sleep: Sleep function (injectable for tests)
    """

    def __init__(
        self,
        db: HistoryDB,
        *,
        poll_interval_seconds: float = 0.05,
        clock: Callable[[], datetime] = now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")
        self._db = db
        self._locks = db.tables.locks
        self._poll_interval = poll_interval_seconds
        self._clock = clock
        self._sleep = sleep

    def acquire(self, name: str, *, wait_seconds: float, lease_seconds: float) -> _Lease:
        token = generate_token()
        deadline = time.monotonic() + wait_seconds
        while True:
            if self._try_acquire(name, token, lease_seconds):
                return _Lease(name, token, self._release)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise LockTimeoutError(name, wait_seconds)
            self._sleep(min(self._poll_interval, remaining))

    def _try_acquire(self, name: str, token: str, lease_seconds: float) -> bool:
        current = self._clock()
        expires_at = current + timedelta(seconds=lease_seconds)
        locks = self._locks

        with self._db.connection() as conn:
            taken_over = conn.execute(
                update(locks)
                .where(locks.c.name == name, locks.c.expires_at <= current)
                .values(owner=token, expires_at=expires_at)
            ).rowcount
        if taken_over:
            logger.debug("Took over expired lock", lock_name=name)
            return True

        try:
            with self._db.connection() as conn:
                conn.execute(locks.insert().values(name=name, owner=token, expires_at=expires_at))
        except IntegrityError:
            return False
        return True

    def _release(self, name: str, token: str) -> None:
        locks = self._locks
        with self._db.connection() as conn:
            conn.execute(delete(locks).where(locks.c.name == name, locks.c.owner == token))


def build_lock_provider(config: LockConfig, db: HistoryDB) -> InProcessLockProvider | DatabaseLockProvider:
    """Create the lock provider selected by configuration."""
    if config.backend is LockBackend.DATABASE:
        return DatabaseLockProvider(db, poll_interval_seconds=config.poll_interval_seconds)
    return InProcessLockProvider()
