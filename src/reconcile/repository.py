"""Repositories for mirrored upstream entities.

Thin asyncpg SQL per entity kind. Append-only children expose
``insert_if_absent`` built on ``ON CONFLICT DO NOTHING RETURNING`` so the
unique constraint alone decides whether a row is new. Terminal transitions
filter on the non-terminal status in the WHERE clause, which makes them
idempotent.
"""

import logging
from datetime import datetime
from typing import Any

import asyncpg

from src.reconcile.schemas import (
    INCIDENT_RESOLVED,
    MAINTENANCE_COMPLETED,
    ComponentStatusSample,
    IncidentNote,
    MaintenanceWindow,
    MetricSample,
    StatusSnapshot,
    TrackedIncident,
)
from src.storage.database import Database
from src.storage.errors import translate_unique_violation

logger = logging.getLogger(__name__)


def _affected(status: str) -> int:
    """Row count from an asyncpg status string such as ``UPDATE 1``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0


class IncidentRepository:
    """Incidents and their notes."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_by_id(self, incident_id: str) -> TrackedIncident | None:
        row = await self._db.fetchrow(
            "SELECT * FROM incidents WHERE id = $1", incident_id
        )
        return _row_to_incident(row) if row is not None else None

    async def get_unresolved(self) -> list[TrackedIncident]:
        """All locally known incidents that are not resolved yet."""
        sql = """
            SELECT * FROM incidents
            WHERE status <> $1
            ORDER BY started_at, id
        """
        rows = await self._db.fetch(sql, INCIDENT_RESOLVED)
        return [_row_to_incident(r) for r in rows]

    async def insert(self, incident: TrackedIncident) -> None:
        """Insert a new incident.

        Raises:
            UniqueViolation: If the id already exists.
        """
        sql = """
            INSERT INTO incidents (
                id, title, impact, status, started_at, resolved_at,
                created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        """
        try:
            await self._db.execute(
                sql,
                incident.id,
                incident.title,
                incident.impact,
                incident.status,
                incident.started_at,
                incident.resolved_at,
                incident.created_at,
                incident.updated_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise translate_unique_violation(e) from e

    async def update(self, incident: TrackedIncident) -> bool:
        """Write the mutable fields of an incident.

        Returns:
            True if a row was updated.
        """
        sql = """
            UPDATE incidents
            SET title = $2, impact = $3, status = $4,
                resolved_at = $5, updated_at = $6
            WHERE id = $1
        """
        status = await self._db.execute(
            sql,
            incident.id,
            incident.title,
            incident.impact,
            incident.status,
            incident.resolved_at,
            incident.updated_at,
        )
        if _affected(status) == 0:
            logger.warning("Update matched no incident %s", incident.id)
            return False
        return True

    async def mark_resolved(self, incident_id: str, now: datetime) -> bool:
        """Resolve an incident unless it already is.

        Returns:
            True if the incident transitioned.
        """
        sql = """
            UPDATE incidents
            SET status = $2, resolved_at = $3, updated_at = $3
            WHERE id = $1 AND status <> $2
        """
        status = await self._db.execute(sql, incident_id, INCIDENT_RESOLVED, now)
        return _affected(status) > 0

    async def insert_note_if_absent(self, note: IncidentNote) -> bool:
        """Insert a note unless its id is already stored.

        Returns:
            True if a new row was written.
        """
        sql = """
            INSERT INTO incident_updates (
                id, incident_id, body, status, published_at
            ) VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (id) DO NOTHING
            RETURNING id
        """
        inserted = await self._db.fetchval(
            sql,
            note.id,
            note.incident_id,
            note.body,
            note.status,
            note.published_at,
        )
        return inserted is not None


class MaintenanceRepository:
    """Scheduled maintenance windows."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_by_id(self, maintenance_id: str) -> MaintenanceWindow | None:
        row = await self._db.fetchrow(
            "SELECT * FROM maintenances WHERE id = $1", maintenance_id
        )
        return _row_to_maintenance(row) if row is not None else None

    async def get_non_terminal(self) -> list[MaintenanceWindow]:
        """Windows that are scheduled or in progress."""
        sql = """
            SELECT * FROM maintenances
            WHERE status <> $1
            ORDER BY scheduled_for, id
        """
        rows = await self._db.fetch(sql, MAINTENANCE_COMPLETED)
        return [_row_to_maintenance(r) for r in rows]

    async def insert(self, window: MaintenanceWindow) -> None:
        """Insert a new maintenance window.

        Raises:
            UniqueViolation: If the id already exists.
        """
        sql = """
            INSERT INTO maintenances (
                id, title, status, scheduled_for, scheduled_until,
                created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
        """
        try:
            await self._db.execute(
                sql,
                window.id,
                window.title,
                window.status,
                window.scheduled_for,
                window.scheduled_until,
                window.created_at,
                window.updated_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise translate_unique_violation(e) from e

    async def update(self, window: MaintenanceWindow) -> bool:
        sql = """
            UPDATE maintenances
            SET title = $2, status = $3, scheduled_for = $4,
                scheduled_until = $5, updated_at = $6
            WHERE id = $1
        """
        status = await self._db.execute(
            sql,
            window.id,
            window.title,
            window.status,
            window.scheduled_for,
            window.scheduled_until,
            window.updated_at,
        )
        if _affected(status) == 0:
            logger.warning("Update matched no maintenance %s", window.id)
            return False
        return True

    async def mark_completed(self, maintenance_id: str, now: datetime) -> bool:
        """Complete a window unless it already is.

        Returns:
            True if the window transitioned.
        """
        sql = """
            UPDATE maintenances
            SET status = $2, updated_at = $3
            WHERE id = $1 AND status <> $2
        """
        status = await self._db.execute(sql, maintenance_id, MAINTENANCE_COMPLETED, now)
        return _affected(status) > 0


class StatusLogRepository:
    """Overall status snapshots and per-component samples."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def insert_snapshot_if_absent(self, snapshot: StatusSnapshot) -> bool:
        sql = """
            INSERT INTO status_logs (indicator, description, source_timestamp)
            VALUES ($1, $2, $3)
            ON CONFLICT (source_timestamp) DO NOTHING
            RETURNING id
        """
        inserted = await self._db.fetchval(
            sql,
            snapshot.indicator,
            snapshot.description,
            snapshot.source_timestamp,
        )
        return inserted is not None

    async def insert_component_if_absent(self, sample: ComponentStatusSample) -> bool:
        sql = """
            INSERT INTO component_logs (component_id, name, status, source_timestamp)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (component_id, source_timestamp) DO NOTHING
            RETURNING id
        """
        inserted = await self._db.fetchval(
            sql,
            sample.component_id,
            sample.name,
            sample.status,
            sample.source_timestamp,
        )
        return inserted is not None


class MetricRepository:
    """Metric samples, deduplicated on (metric_name, timestamp)."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def insert_if_absent(self, sample: MetricSample) -> bool:
        """Insert a sample unless one already exists for its key.

        Returns:
            True if a new row was written.
        """
        sql = """
            INSERT INTO metric_logs (metric_name, value, unit, interval_sec, timestamp)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (metric_name, timestamp) DO NOTHING
            RETURNING id
        """
        inserted = await self._db.fetchval(
            sql,
            sample.metric_name,
            sample.value,
            sample.unit,
            sample.interval_sec,
            sample.timestamp,
        )
        return inserted is not None


def _row_to_incident(row: Any) -> TrackedIncident:
    return TrackedIncident(
        id=row["id"],
        title=row["title"],
        impact=row["impact"],
        status=row["status"],
        started_at=row["started_at"],
        resolved_at=row["resolved_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_maintenance(row: Any) -> MaintenanceWindow:
    return MaintenanceWindow(
        id=row["id"],
        title=row["title"],
        status=row["status"],
        scheduled_for=row["scheduled_for"],
        scheduled_until=row["scheduled_until"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
