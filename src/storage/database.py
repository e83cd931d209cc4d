"""
PostgreSQL connection pool.

One ``Database`` is shared by every poller task and every API request.
asyncpg hands each caller its own connection from the pool, so concurrent
reconcilers and claim submissions never share a connection. Every
session runs in UTC so ``TIMESTAMPTZ`` values come back timezone-aware
and comparable with ``datetime.now(timezone.utc)``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from src.config.settings import get_settings

logger = logging.getLogger(__name__)


class Database:
    """
    Lazily connected asyncpg pool with query helpers.

    Usage:
        async with Database() as db:
            await db.execute("DELETE FROM delivery_receipts WHERE id = $1", 7)

            async with db.transaction() as conn:
                await conn.execute(...)
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        settings = get_settings()
        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = settings.db_command_timeout_seconds
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Create the pool. No-op when already connected.

        Connection errors propagate; startup retries live in the caller.
        """
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            self._database_url,
            min_size=self._min_size,
            max_size=self._max_size,
            command_timeout=self._command_timeout,
            server_settings={"timezone": "UTC", "application_name": "status-pulse"},
        )
        logger.info("Database pool ready (size %d-%d)", self._min_size, self._max_size)

    async def close(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info("Database pool closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a pooled connection inside a transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement; returns the command tag (e.g. ``"DELETE 1"``)."""
        return await self.pool.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self.pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self.pool.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self.pool.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if a trivial query succeeds."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError, RuntimeError) as e:
            logger.warning("Database health check failed: %s", e)
            return False
