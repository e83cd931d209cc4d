"""Maintenance reconciler.

Mirrors the upcoming and active scheduled-maintenance lists. Status only
moves forward: scheduled -> in_progress -> completed, or straight from
scheduled to completed when a window ends without ever going active.

Upserts run before completion so a window that was rescheduled or went
active since the last cycle is judged on its fresh schedule.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog

from src.collector.client import StatusPageClient
from src.collector.schemas import Maintenance
from src.observability.metrics import MetricsCollector
from src.reconcile.base import Clock, Reconciler
from src.reconcile.repository import MaintenanceRepository
from src.reconcile.schemas import (
    MAINTENANCE_SCHEDULED,
    MaintenanceWindow,
    ReconcileOutcome,
    maintenance_rank,
)

logger = structlog.get_logger(__name__)


@dataclass
class MaintenanceSnapshot:
    """Both upstream lists, fetched in the same cycle."""

    upcoming: list[Maintenance]
    active: list[Maintenance]

    def all(self) -> list[Maintenance]:
        """Every listed window, active entries last so they win on overlap."""
        merged: dict[str, Maintenance] = {}
        for m in self.upcoming:
            merged[m.id] = m
        for m in self.active:
            merged[m.id] = m
        return list(merged.values())


class MaintenanceReconciler(Reconciler[MaintenanceSnapshot]):
    kind = "maintenance"

    def __init__(
        self,
        client: StatusPageClient,
        repository: MaintenanceRepository,
        clock: Clock | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        super().__init__(clock=clock, metrics=metrics)
        self._client = client
        self._repo = repository

    async def fetch(self) -> MaintenanceSnapshot:
        # Both lists must succeed; a partial view could complete live windows
        upcoming = await self._client.fetch_upcoming_maintenances()
        active = await self._client.fetch_active_maintenances()
        return MaintenanceSnapshot(upcoming=upcoming, active=active)

    async def reconcile(self, snapshot: MaintenanceSnapshot, now: datetime) -> ReconcileOutcome:
        outcome = ReconcileOutcome(kind=self.kind)
        await self.upsert_present(snapshot, now, outcome)
        await self.complete_missing(snapshot, now, outcome)
        await self.insert_children(snapshot, now, outcome)
        return outcome

    async def complete_missing(
        self, snapshot: MaintenanceSnapshot, now: datetime, outcome: ReconcileOutcome
    ) -> None:
        active_ids = {m.id for m in snapshot.active}

        for local in await self._repo.get_non_terminal():
            # Listed as active means still running, whatever the schedule says
            if local.id in active_ids or local.scheduled_until >= now:
                continue

            reason = "skipped" if local.status == MAINTENANCE_SCHEDULED else "ended"

            if await self._repo.mark_completed(local.id, now):
                outcome.completed += 1
                logger.info(
                    "Marked maintenance as completed",
                    maintenance_id=local.id,
                    reason=reason,
                )

    async def upsert_present(
        self, snapshot: MaintenanceSnapshot, now: datetime, outcome: ReconcileOutcome
    ) -> None:
        for m in snapshot.all():
            existing = await self._repo.get_by_id(m.id)
            if existing is None:
                await self._repo.insert(
                    MaintenanceWindow(
                        id=m.id,
                        title=m.name,
                        status=m.status,
                        scheduled_for=m.scheduled_for,
                        scheduled_until=m.scheduled_until,
                        created_at=m.created_at,
                        updated_at=m.updated_at,
                    )
                )
                outcome.inserted += 1
                logger.info(
                    "Inserted new maintenance",
                    maintenance_id=m.id,
                    title=m.name,
                )
                continue

            changed = _apply_changes(existing, m)
            if changed is None:
                continue

            await self._repo.update(changed)
            outcome.updated += 1
            logger.debug(
                "Updated maintenance",
                maintenance_id=m.id,
                status=changed.status,
            )


def _apply_changes(
    existing: MaintenanceWindow, m: Maintenance
) -> MaintenanceWindow | None:
    """Merge upstream fields, refusing to move the status backwards.

    Returns the updated record, or None when nothing that matters changed.
    """
    status = existing.status
    if maintenance_rank(m.status) > maintenance_rank(existing.status):
        status = m.status

    if (
        status == existing.status
        and m.scheduled_for == existing.scheduled_for
        and m.scheduled_until == existing.scheduled_until
    ):
        return None

    return MaintenanceWindow(
        id=existing.id,
        title=m.name,
        status=status,
        scheduled_for=m.scheduled_for,
        scheduled_until=m.scheduled_until,
        created_at=existing.created_at,
        updated_at=max(existing.updated_at, m.updated_at),
    )
