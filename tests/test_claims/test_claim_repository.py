"""Tests for claim window queries and row mapping."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.claims.repository import ClaimRepository
from src.claims.schemas import Claim
from src.storage.database import Database

NOW = datetime(2026, 1, 10, 14, 37, tzinfo=timezone.utc)
SINCE = NOW - timedelta(minutes=10)


def _row(claim_id: int = 7, **overrides) -> dict:
    row = {
        "id": claim_id,
        "actor_id": "a1",
        "scope_id": "g1",
        "category": "login",
        "content": "cannot sign in",
        "state": "active",
        "created_at": NOW,
    }
    row.update(overrides)
    return row


@pytest.fixture
def mock_db() -> AsyncMock:
    return AsyncMock(spec=Database)


@pytest.fixture
def repo(mock_db) -> ClaimRepository:
    return ClaimRepository(mock_db)


class TestClaimRepository:
    @pytest.mark.asyncio
    async def test_insert_returns_stored_claim(self, repo, mock_db):
        mock_db.fetchrow.return_value = _row(42)

        stored = await repo.insert(Claim(actor_id="a1", category="login", created_at=NOW))

        assert stored.id == 42
        assert stored.scope_id == "g1"
        assert "RETURNING *" in mock_db.fetchrow.await_args.args[0]

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, repo, mock_db):
        mock_db.fetchrow.return_value = None

        assert await repo.get_by_id(404) is None

    @pytest.mark.asyncio
    async def test_latest_active_uses_strict_lower_bound(self, repo, mock_db):
        mock_db.fetchrow.return_value = _row()

        claim = await repo.find_latest_active("a1", SINCE)

        sql, *params = mock_db.fetchrow.await_args.args
        assert "created_at > $3" in sql
        assert "created_at >=" not in sql
        assert "ORDER BY created_at DESC, id DESC" in sql
        assert params == ["a1", "active", SINCE]
        assert claim == Claim(
            id=7,
            actor_id="a1",
            scope_id="g1",
            category="login",
            content="cannot sign in",
            state="active",
            created_at=NOW,
        )

    @pytest.mark.asyncio
    async def test_active_since_is_ordered_earliest_first(self, repo, mock_db):
        mock_db.fetch.return_value = [_row(1), _row(2, created_at=NOW + timedelta(seconds=1))]

        claims = await repo.find_active_since("a1", SINCE)

        sql = mock_db.fetch.await_args.args[0]
        assert "created_at > $3" in sql
        assert "ORDER BY created_at ASC, id ASC" in sql
        assert [c.id for c in claims] == [1, 2]

    @pytest.mark.asyncio
    async def test_count_distinct_actors(self, repo, mock_db):
        mock_db.fetchval.return_value = 3

        assert await repo.count_distinct_actors("login", SINCE) == 3

        sql, *params = mock_db.fetchval.await_args.args
        assert "COUNT(DISTINCT actor_id)" in sql
        assert "created_at > $3" in sql
        assert "actor_id <> $4" not in sql
        assert params == ["login", "active", SINCE]

    @pytest.mark.asyncio
    async def test_count_distinct_actors_excluding_one(self, repo, mock_db):
        mock_db.fetchval.return_value = None

        assert await repo.count_distinct_actors("login", SINCE, exclude_actor="a1") == 0

        sql, *params = mock_db.fetchval.await_args.args
        assert "actor_id <> $4" in sql
        assert params == ["login", "active", SINCE, "a1"]

    @pytest.mark.asyncio
    async def test_recent_timestamps(self, repo, mock_db):
        mock_db.fetch.return_value = [{"created_at": NOW}, {"created_at": SINCE}]

        assert await repo.recent_timestamps("login", SINCE, limit=2) == [NOW, SINCE]
        assert mock_db.fetch.await_args.args[-1] == 2

    @pytest.mark.asyncio
    async def test_delete_reports_row_count(self, repo, mock_db):
        mock_db.execute.return_value = "DELETE 1"
        assert await repo.delete_by_id(7) is True

        mock_db.execute.return_value = "DELETE 0"
        assert await repo.delete_by_id(7) is False
