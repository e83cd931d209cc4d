"""Status reconciler.

Records the overall page status once per distinct upstream ``updated_at``
and each component's status once per (component, timestamp). Pure
append-only history; nothing is ever updated.
"""

from datetime import datetime

import structlog

from src.collector.client import StatusPageClient
from src.collector.schemas import SummaryResponse
from src.observability.metrics import MetricsCollector
from src.reconcile.base import Clock, Reconciler
from src.reconcile.repository import StatusLogRepository
from src.reconcile.schemas import (
    ComponentStatusSample,
    ReconcileOutcome,
    StatusSnapshot,
)

logger = structlog.get_logger(__name__)


class StatusReconciler(Reconciler[SummaryResponse]):
    kind = "status"

    def __init__(
        self,
        client: StatusPageClient,
        repository: StatusLogRepository,
        clock: Clock | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        super().__init__(clock=clock, metrics=metrics)
        self._client = client
        self._repo = repository

    async def fetch(self) -> SummaryResponse:
        return await self._client.fetch_summary()

    async def insert_children(
        self, snapshot: SummaryResponse, now: datetime, outcome: ReconcileOutcome
    ) -> None:
        source_timestamp = snapshot.page.updated_at

        status = StatusSnapshot(
            indicator=snapshot.status.indicator,
            description=snapshot.status.description,
            source_timestamp=source_timestamp,
        )
        if await self._repo.insert_snapshot_if_absent(status):
            outcome.inserted += 1
            logger.info(
                "Recorded status change",
                indicator=status.indicator,
                source_timestamp=source_timestamp.isoformat(),
            )

        for component in snapshot.components:
            sample = ComponentStatusSample(
                component_id=component.id,
                name=component.name,
                status=component.status,
                source_timestamp=source_timestamp,
            )
            if await self._repo.insert_component_if_absent(sample):
                outcome.inserted += 1
