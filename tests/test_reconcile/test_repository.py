"""Tests for the mirror repositories' SQL guards and result mapping."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import asyncpg
import pytest

from src.reconcile.repository import (
    IncidentRepository,
    MaintenanceRepository,
    MetricRepository,
    StatusLogRepository,
)
from src.reconcile.schemas import (
    ComponentStatusSample,
    IncidentNote,
    MaintenanceWindow,
    MetricSample,
    StatusSnapshot,
    TrackedIncident,
)
from src.storage.database import Database
from src.storage.errors import UniqueViolation

T0 = datetime(2026, 1, 10, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_db() -> AsyncMock:
    return AsyncMock(spec=Database)


@pytest.fixture
def incident() -> TrackedIncident:
    return TrackedIncident(
        id="inc_1",
        title="Login failures",
        impact="major",
        status="investigating",
        started_at=T0,
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def window() -> MaintenanceWindow:
    return MaintenanceWindow(
        id="mnt_1",
        title="Database upgrade",
        status="scheduled",
        scheduled_for=T0,
        scheduled_until=T0,
        created_at=T0,
        updated_at=T0,
    )


class TestIncidentRepository:
    @pytest.mark.asyncio
    async def test_mark_resolved_only_touches_unresolved_rows(self, mock_db):
        repo = IncidentRepository(mock_db)

        mock_db.execute.return_value = "UPDATE 1"
        assert await repo.mark_resolved("inc_1", T0) is True

        sql, *params = mock_db.execute.await_args.args
        assert "status <> $2" in sql
        assert params == ["inc_1", "resolved", T0]

        mock_db.execute.return_value = "UPDATE 0"
        assert await repo.mark_resolved("inc_1", T0) is False

    @pytest.mark.asyncio
    async def test_update_without_match(self, mock_db, incident):
        mock_db.execute.return_value = "UPDATE 0"

        assert await IncidentRepository(mock_db).update(incident) is False

    @pytest.mark.asyncio
    async def test_duplicate_insert_is_translated(self, mock_db, incident):
        mock_db.execute.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(UniqueViolation):
            await IncidentRepository(mock_db).insert(incident)

    @pytest.mark.asyncio
    async def test_note_insert_is_conflict_free(self, mock_db):
        note = IncidentNote(
            id="upd_1",
            incident_id="inc_1",
            body="Looking",
            status="investigating",
            published_at=T0,
        )
        repo = IncidentRepository(mock_db)

        mock_db.fetchval.return_value = "upd_1"
        assert await repo.insert_note_if_absent(note) is True
        assert "ON CONFLICT (id) DO NOTHING" in mock_db.fetchval.await_args.args[0]

        mock_db.fetchval.return_value = None
        assert await repo.insert_note_if_absent(note) is False


class TestMaintenanceRepository:
    @pytest.mark.asyncio
    async def test_mark_completed_only_touches_open_windows(self, mock_db):
        repo = MaintenanceRepository(mock_db)

        mock_db.execute.return_value = "UPDATE 1"
        assert await repo.mark_completed("mnt_1", T0) is True

        sql, *params = mock_db.execute.await_args.args
        assert "status <> $2" in sql
        assert params == ["mnt_1", "completed", T0]

        mock_db.execute.return_value = "UPDATE 0"
        assert await repo.mark_completed("mnt_1", T0) is False

    @pytest.mark.asyncio
    async def test_non_terminal_excludes_completed(self, mock_db, window):
        mock_db.fetch.return_value = [
            {
                "id": window.id,
                "title": window.title,
                "status": window.status,
                "scheduled_for": T0,
                "scheduled_until": T0,
                "created_at": T0,
                "updated_at": T0,
            }
        ]

        rows = await MaintenanceRepository(mock_db).get_non_terminal()

        assert rows == [window]
        assert mock_db.fetch.await_args.args[1:] == ("completed",)

    @pytest.mark.asyncio
    async def test_update_reports_row_count(self, mock_db, window):
        repo = MaintenanceRepository(mock_db)

        mock_db.execute.return_value = "UPDATE 1"
        assert await repo.update(window) is True

        mock_db.execute.return_value = "UPDATE 0"
        assert await repo.update(window) is False


class TestAppendOnlyRepositories:
    @pytest.mark.asyncio
    async def test_status_snapshot_dedup(self, mock_db):
        repo = StatusLogRepository(mock_db)
        snapshot = StatusSnapshot(
            indicator="minor", description="Partial outage", source_timestamp=T0
        )

        mock_db.fetchval.return_value = 1
        assert await repo.insert_snapshot_if_absent(snapshot) is True
        assert "ON CONFLICT (source_timestamp) DO NOTHING" in mock_db.fetchval.await_args.args[0]

        mock_db.fetchval.return_value = None
        assert await repo.insert_snapshot_if_absent(snapshot) is False

    @pytest.mark.asyncio
    async def test_component_sample_dedup(self, mock_db):
        sample = ComponentStatusSample(
            component_id="cmp_1", name="API", status="operational", source_timestamp=T0
        )
        mock_db.fetchval.return_value = None

        assert await StatusLogRepository(mock_db).insert_component_if_absent(sample) is False
        assert (
            "ON CONFLICT (component_id, source_timestamp) DO NOTHING"
            in mock_db.fetchval.await_args.args[0]
        )

    @pytest.mark.asyncio
    async def test_metric_sample_dedup(self, mock_db):
        sample = MetricSample(metric_name="api_latency", timestamp=T0, value=12.5, unit="ms")
        repo = MetricRepository(mock_db)

        mock_db.fetchval.return_value = 9
        assert await repo.insert_if_absent(sample) is True

        sql, *params = mock_db.fetchval.await_args.args
        assert "ON CONFLICT (metric_name, timestamp) DO NOTHING" in sql
        assert params == ["api_latency", 12.5, "ms", 60, T0]

        mock_db.fetchval.return_value = None
        assert await repo.insert_if_absent(sample) is False
