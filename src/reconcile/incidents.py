"""Incident reconciler.

Mirrors ``/incidents/unresolved.json``. An incident that drops off the
unresolved list is resolved locally. Resolved incidents stay resolved
even if upstream lists them again.
"""

from dataclasses import replace
from datetime import datetime

import structlog

from src.collector.client import StatusPageClient
from src.collector.schemas import Incident
from src.observability.metrics import MetricsCollector
from src.reconcile.base import Clock, Reconciler
from src.reconcile.repository import IncidentRepository
from src.reconcile.schemas import (
    INCIDENT_RESOLVED,
    IncidentNote,
    ReconcileOutcome,
    TrackedIncident,
)

logger = structlog.get_logger(__name__)


class IncidentReconciler(Reconciler[list[Incident]]):
    kind = "incident"

    def __init__(
        self,
        client: StatusPageClient,
        repository: IncidentRepository,
        clock: Clock | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        super().__init__(clock=clock, metrics=metrics)
        self._client = client
        self._repo = repository

    async def fetch(self) -> list[Incident]:
        return await self._client.fetch_unresolved_incidents()

    async def complete_missing(
        self, snapshot: list[Incident], now: datetime, outcome: ReconcileOutcome
    ) -> None:
        listed = {incident.id for incident in snapshot}
        for local in await self._repo.get_unresolved():
            if local.id in listed:
                continue
            if await self._repo.mark_resolved(local.id, now):
                outcome.completed += 1
                logger.info(
                    "Marked incident as resolved",
                    incident_id=local.id,
                    title=local.title,
                )

    async def upsert_present(
        self, snapshot: list[Incident], now: datetime, outcome: ReconcileOutcome
    ) -> None:
        for incident in snapshot:
            existing = await self._repo.get_by_id(incident.id)
            if existing is None:
                await self._repo.insert(_new_incident(incident, now))
                outcome.inserted += 1
                logger.info(
                    "Inserted new incident",
                    incident_id=incident.id,
                    title=incident.name,
                )
                continue

            changed = _apply_changes(existing, incident, now)

            if existing.is_resolved and incident.status != INCIDENT_RESOLVED:
                if incident.updated_at <= existing.updated_at:
                    # This upstream revision was already seen and refused
                    continue
                outcome.skipped += 1
                logger.warning(
                    "Upstream reopened a resolved incident, keeping it resolved",
                    incident_id=incident.id,
                    upstream_status=incident.status,
                )
                if changed is None:
                    # Remember the revision so the next cycle stays quiet
                    changed = replace(existing, updated_at=incident.updated_at)
            if changed is None:
                continue

            await self._repo.update(changed)
            outcome.updated += 1
            logger.debug(
                "Updated incident",
                incident_id=incident.id,
                status=changed.status,
            )

    async def insert_children(
        self, snapshot: list[Incident], now: datetime, outcome: ReconcileOutcome
    ) -> None:
        for incident in snapshot:
            for update in incident.incident_updates:
                note = IncidentNote(
                    id=update.id,
                    incident_id=incident.id,
                    body=update.body,
                    status=update.status,
                    published_at=update.created_at,
                )
                if await self._repo.insert_note_if_absent(note):
                    outcome.inserted += 1
                    logger.debug(
                        "Inserted incident update",
                        incident_id=incident.id,
                        update_id=update.id,
                    )


def _new_incident(incident: Incident, now: datetime) -> TrackedIncident:
    resolved_at = None
    if incident.status == INCIDENT_RESOLVED:
        resolved_at = incident.resolved_at or now
    return TrackedIncident(
        id=incident.id,
        title=incident.name,
        impact=incident.impact,
        status=incident.status,
        started_at=incident.created_at,
        resolved_at=resolved_at,
        created_at=incident.created_at,
        updated_at=incident.updated_at,
    )


def _apply_changes(
    existing: TrackedIncident, incident: Incident, now: datetime
) -> TrackedIncident | None:
    """Merge upstream fields into a stored incident.

    Returns the updated record, or None when nothing that matters changed.
    The status never leaves ``resolved``.
    """
    if existing.is_resolved:
        status = INCIDENT_RESOLVED
        resolved_at = existing.resolved_at or now
    elif incident.status == INCIDENT_RESOLVED:
        status = INCIDENT_RESOLVED
        resolved_at = incident.resolved_at or now
    else:
        status = incident.status
        resolved_at = None

    if (
        status == existing.status
        and incident.impact == existing.impact
        and incident.name == existing.title
    ):
        return None

    return TrackedIncident(
        id=existing.id,
        title=incident.name,
        impact=incident.impact,
        status=status,
        started_at=existing.started_at,
        resolved_at=resolved_at,
        created_at=existing.created_at,
        updated_at=max(existing.updated_at, incident.updated_at),
    )
