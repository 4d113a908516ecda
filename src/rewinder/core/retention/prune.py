# src/rewinder/core/retention/prune.py
"""Prune engine for version history based on retention policy.

Selects versions that fall outside the configured retention window
(by age, by count per instance, or both) and deletes them in chunks,
while preserving every version needed to reconstruct the survivors.
"""

from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from time import perf_counter

from rewinder.contracts.config import PruneConfig
from rewinder.contracts.events import PruneCompleted
from rewinder.contracts.versions import VersionStub
from rewinder.core._helpers import now
from rewinder.core.events import EventBusProtocol, NullEventBus
from rewinder.core.history.store import VersionStore
from rewinder.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PrunePolicy:
    """One prune invocation.

    When both retention_days and retention_count are set, a version is only
    deleted if BOTH policies would delete it.
    """

    retention_days: int | None = None
    retention_count: int | None = None
    record_type: str | None = None
    dry_run: bool = False

    @property
    def is_configured(self) -> bool:
        return self.retention_days is not None or self.retention_count is not None


@dataclass
class PruneResult:
    """Result of a prune operation.

    total_deleted counts the versions selected for deletion, so dry runs
    report what a real run would delete.
    """

    total_examined: int
    total_deleted: int
    total_preserved: int
    deleted_by_type: dict[str, int] = field(default_factory=dict)
    preserved_by_type: dict[str, int] = field(default_factory=dict)
    dry_run: bool = False
    duration_seconds: float = 0.0

    @classmethod
    def empty(cls, *, dry_run: bool) -> "PruneResult":
        return cls(total_examined=0, total_deleted=0, total_preserved=0, dry_run=dry_run)

    @property
    def types_affected(self) -> int:
        """Number of record types with at least one deletion."""
        return sum(1 for count in self.deleted_by_type.values() if count > 0)

    def summary(self) -> str:
        if self.dry_run:
            return (
                f"[DRY RUN] Would delete {self.total_deleted} of {self.total_examined} versions "
                f"across {self.types_affected} record type(s)"
            )
        return f"Deleted {self.total_deleted} of {self.total_examined} versions across {self.types_affected} record type(s)"


def select_deletable(
    versions: Sequence[VersionStub],
    *,
    retention_days: int | None,
    retention_count: int | None,
    cutoff: datetime | None,
    keep_version_one: bool,
    keep_snapshots: bool,
) -> list[VersionStub]:
    """Versions of ONE instance that may be deleted.

    Args:
        versions: Every stored version of the instance
        retention_days: Age policy (None disables it)
        retention_count: Count policy (None disables it)
        cutoff: now - retention_days (required when retention_days is set)
        keep_version_one: Never delete version 1
        keep_snapshots: Keep the snapshot the oldest survivor reconstructs
            from, along with every version above it (the head counts as
            the oldest survivor when every version is outside the policy)

    Returns:
        Deletable versions, ascending by version number
    """
    ordered = sorted(versions, key=lambda v: v.version)
    if not ordered:
        return []

    by_age: set[int] | None = None
    if retention_days is not None:
        if cutoff is None:
            raise ValueError("cutoff is required when retention_days is set")
        by_age = {v.version for v in ordered if v.created_at < cutoff}

    by_count: set[int] | None = None
    if retention_count is not None:
        by_count = {v.version for v in ordered[: max(len(ordered) - retention_count, 0)]}

    if by_age is not None and by_count is not None:
        candidates = by_age & by_count
    elif by_age is not None:
        candidates = by_age
    elif by_count is not None:
        candidates = by_count
    else:
        return []

    # Oldest version the policy itself keeps; version 1 kept only by
    # keep_version_one does not count as the reconstruction boundary
    survivors = [v.version for v in ordered if v.version not in candidates]
    boundary = survivors[0] if survivors else None

    if keep_version_one:
        candidates.discard(1)

    if keep_snapshots and candidates:
        if boundary is None:
            # Every version is outside the policy: the head is the chain to keep
            boundary = ordered[-1].version
            candidates.discard(boundary)
        snapshots = [v.version for v in ordered if v.is_snapshot and v.version <= boundary]
        anchor = max(snapshots) if snapshots else 1
        if anchor in candidates:
            candidates = {version for version in candidates if version < anchor}

    return [v for v in ordered if v.version in candidates]


class PruneEngine:
    """Applies retention policy to stored versions.

    Holds no state between invocations, so a failed run can simply be
    re-run. Takes no writer locks: a version written mid-prune is either
    seen or not, and either way survives.

    Example:
        engine = PruneEngine(store, PruneConfig.from_settings(settings.pruning))
        result = engine.prune(engine.policy_from_settings(dry_run=True))
        print(result.summary())
    """

    def __init__(
        self,
        store: VersionStore,
        config: PruneConfig,
        *,
        event_bus: EventBusProtocol | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        """Initialize PruneEngine.

        Args:
            store: Version persistence
            config: Safety filters, chunk size and default retention knobs
            event_bus: Receives PruneCompleted
            clock: UTC clock for age cutoffs (injectable for tests)
        """
        self._store = store
        self._config = config
        self._events: EventBusProtocol = event_bus or NullEventBus()
        self._clock = clock

    def policy_from_settings(
        self,
        *,
        retention_days: int | None = None,
        retention_count: int | None = None,
        record_type: str | None = None,
        dry_run: bool = False,
    ) -> PrunePolicy:
        """Build a policy, falling back to configured defaults for unset knobs."""
        return PrunePolicy(
            retention_days=retention_days if retention_days is not None else self._config.retention_days,
            retention_count=retention_count if retention_count is not None else self._config.retention_count,
            record_type=record_type,
            dry_run=dry_run,
        )

    def prune(self, policy: PrunePolicy) -> PruneResult:
        """Select and (unless dry_run) delete versions outside the policy.

        Returns:
            PruneResult; a zero result when neither retention knob is set

        Raises:
            sqlalchemy.exc.SQLAlchemyError: Storage failure (earlier chunks stay deleted)
        """
        if not policy.is_configured:
            logger.info("No retention policy configured, nothing to prune", dry_run=policy.dry_run)
            return PruneResult.empty(dry_run=policy.dry_run)

        start = perf_counter()
        cutoff = self._clock() - timedelta(days=policy.retention_days) if policy.retention_days is not None else None

        deletable: list[VersionStub] = []
        counts: Counter[str] = Counter()
        for history in self._store.instance_histories(policy.record_type):
            counts[history.record_type] += len(history.versions)
            deletable.extend(
                select_deletable(
                    history.versions,
                    retention_days=policy.retention_days,
                    retention_count=policy.retention_count,
                    cutoff=cutoff,
                    keep_version_one=self._config.keep_version_one,
                    keep_snapshots=self._config.keep_snapshots,
                )
            )

        deleted_by_type = dict(Counter(stub.record_type for stub in deletable))
        preserved_by_type = {rtype: count - deleted_by_type.get(rtype, 0) for rtype, count in counts.items()}
        total_examined = sum(counts.values())
        total_deleted = len(deletable)

        if not policy.dry_run and deletable:
            self._delete([stub.version_id for stub in deletable])

        result = PruneResult(
            total_examined=total_examined,
            total_deleted=total_deleted,
            total_preserved=total_examined - total_deleted,
            deleted_by_type=deleted_by_type,
            preserved_by_type=preserved_by_type,
            dry_run=policy.dry_run,
            duration_seconds=perf_counter() - start,
        )
        logger.info(
            "Prune finished",
            summary=result.summary(),
            retention_days=policy.retention_days,
            retention_count=policy.retention_count,
            record_type=policy.record_type,
            duration_seconds=round(result.duration_seconds, 3),
        )
        self._events.emit(PruneCompleted(total_examined=total_examined, total_deleted=total_deleted, dry_run=policy.dry_run))
        return result

    def _delete(self, version_ids: list[int]) -> None:
        chunk_size = self._config.chunk_size
        for start in range(0, len(version_ids), chunk_size):
            chunk = version_ids[start : start + chunk_size]
            deleted = self._store.delete_ids(chunk, chunk_size=chunk_size)
            logger.debug("Deleted version chunk", requested=len(chunk), deleted=deleted)
