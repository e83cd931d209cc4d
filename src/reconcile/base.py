"""
Reconciler skeleton shared by every entity kind.

A poll is: read the clock, fetch one upstream snapshot, then apply three
phases against storage. The default order is below; maintenances run
upsert_present first so completion sees the fresh schedule.

1. complete_missing - move locally non-terminal entities that the
   snapshot no longer lists to their terminal state
2. upsert_present - insert unknown entities, update changed ones
3. insert_children - append-only history keyed by natural key

A FetchError aborts the poll before any phase runs, so a failed fetch is
never mistaken for "everything vanished".
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Generic, TypeVar

import structlog

from src.collector.http_client import FetchError
from src.observability.metrics import MetricsCollector, get_metrics
from src.reconcile.schemas import ReconcileOutcome

logger = structlog.get_logger(__name__)

SnapshotT = TypeVar("SnapshotT")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Reconciler(ABC, Generic[SnapshotT]):
    """Template for one entity kind's fetch-and-reconcile cycle."""

    kind: str = "entity"

    def __init__(
        self,
        clock: Clock | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._clock = clock or utc_now
        self._metrics = metrics

    def _get_metrics(self) -> MetricsCollector:
        if self._metrics is None:
            self._metrics = get_metrics()
        return self._metrics

    async def poll(self) -> ReconcileOutcome:
        """Fetch a snapshot and reconcile it.

        Raises:
            FetchError: Upstream unavailable or malformed; nothing was written.
        """
        now = self._clock()
        try:
            snapshot = await self.fetch()
        except FetchError as e:
            logger.warning(
                "Fetch failed, skipping reconciliation",
                kind=self.kind,
                error=str(e),
            )
            raise

        outcome = await self.reconcile(snapshot, now)
        self._get_metrics().record_reconcile(
            self.kind,
            inserted=outcome.inserted,
            updated=outcome.updated,
            completed=outcome.completed,
        )
        if outcome.writes:
            logger.info(
                "Reconciled snapshot",
                kind=self.kind,
                inserted=outcome.inserted,
                updated=outcome.updated,
                completed=outcome.completed,
                skipped=outcome.skipped,
            )
        return outcome

    async def reconcile(self, snapshot: SnapshotT, now: datetime) -> ReconcileOutcome:
        """Apply one snapshot to storage. Safe to re-run with the same input."""
        outcome = ReconcileOutcome(kind=self.kind)
        await self.complete_missing(snapshot, now, outcome)
        await self.upsert_present(snapshot, now, outcome)
        await self.insert_children(snapshot, now, outcome)
        return outcome

    @abstractmethod
    async def fetch(self) -> SnapshotT:
        """Fetch the upstream snapshot, raising FetchError on failure."""
        ...

    async def complete_missing(
        self, snapshot: SnapshotT, now: datetime, outcome: ReconcileOutcome
    ) -> None:
        """Terminal transitions for entities absent from the snapshot."""

    async def upsert_present(
        self, snapshot: SnapshotT, now: datetime, outcome: ReconcileOutcome
    ) -> None:
        """Insert unknown entities and update changed ones."""

    async def insert_children(
        self, snapshot: SnapshotT, now: datetime, outcome: ReconcileOutcome
    ) -> None:
        """Insert append-only rows that are not stored yet."""
