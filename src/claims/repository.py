"""Claim repository.

Every window query uses a strict lower bound (``created_at > since``) so a
claim exactly one window old is already outside it.
"""

import logging
from datetime import datetime
from typing import Any

from src.claims.schemas import Claim, ClaimState
from src.storage.database import Database

logger = logging.getLogger(__name__)

_ACTIVE = ClaimState.ACTIVE.value


class ClaimRepository:
    """Persistence and window queries for claims."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def insert(self, claim: Claim) -> Claim:
        """Insert a claim and return it with its assigned id."""
        sql = """
            INSERT INTO claims (actor_id, scope_id, category, content, state, created_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            claim.actor_id,
            claim.scope_id,
            claim.category,
            claim.content,
            claim.state,
            claim.created_at,
        )
        return _row_to_claim(row)

    async def get_by_id(self, claim_id: int) -> Claim | None:
        row = await self._db.fetchrow("SELECT * FROM claims WHERE id = $1", claim_id)
        return _row_to_claim(row) if row is not None else None

    async def find_latest_active(self, actor_id: str, since: datetime) -> Claim | None:
        """The actor's most recent active claim after ``since``."""
        sql = """
            SELECT * FROM claims
            WHERE actor_id = $1 AND state = $2 AND created_at > $3
            ORDER BY created_at DESC, id DESC
            LIMIT 1
        """
        row = await self._db.fetchrow(sql, actor_id, _ACTIVE, since)
        return _row_to_claim(row) if row is not None else None

    async def find_active_since(self, actor_id: str, since: datetime) -> list[Claim]:
        """All the actor's active claims after ``since``, earliest first.

        The (created_at, id) order is total, so every caller picks the
        same first row.
        """
        sql = """
            SELECT * FROM claims
            WHERE actor_id = $1 AND state = $2 AND created_at > $3
            ORDER BY created_at ASC, id ASC
        """
        rows = await self._db.fetch(sql, actor_id, _ACTIVE, since)
        return [_row_to_claim(r) for r in rows]

    async def delete_by_id(self, claim_id: int) -> bool:
        status = await self._db.execute("DELETE FROM claims WHERE id = $1", claim_id)
        return status.endswith(" 1")

    async def count_distinct_actors(
        self,
        category: str,
        since: datetime,
        exclude_actor: str | None = None,
    ) -> int:
        """Distinct actors with active claims in a category after ``since``."""
        if exclude_actor is None:
            sql = """
                SELECT COUNT(DISTINCT actor_id) FROM claims
                WHERE category = $1 AND state = $2 AND created_at > $3
            """
            count = await self._db.fetchval(sql, category, _ACTIVE, since)
        else:
            sql = """
                SELECT COUNT(DISTINCT actor_id) FROM claims
                WHERE category = $1 AND state = $2 AND created_at > $3
                  AND actor_id <> $4
            """
            count = await self._db.fetchval(sql, category, _ACTIVE, since, exclude_actor)
        return count or 0

    async def recent_timestamps(
        self, category: str, since: datetime, limit: int = 5
    ) -> list[datetime]:
        """Creation times of the newest active claims in a category."""
        sql = """
            SELECT created_at FROM claims
            WHERE category = $1 AND state = $2 AND created_at > $3
            ORDER BY created_at DESC, id DESC
            LIMIT $4
        """
        rows = await self._db.fetch(sql, category, _ACTIVE, since, limit)
        return [r["created_at"] for r in rows]


def _row_to_claim(row: Any) -> Claim:
    return Claim(
        id=row["id"],
        actor_id=row["actor_id"],
        scope_id=row["scope_id"],
        category=row["category"],
        content=row["content"],
        state=row["state"],
        created_at=row["created_at"],
    )
