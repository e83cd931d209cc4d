"""Key/value config repository backed by the ``bot_config`` table.

Thin asyncpg SQL with a row-to-value helper. Values are stored as
text; typed readers parse and raise ``ConfigurationError`` rather than
guessing a default.
"""

import logging
from datetime import datetime, timezone

from src.runtime_config.errors import ConfigurationError
from src.runtime_config.keys import DEFAULT_VALUES
from src.storage.database import Database

logger = logging.getLogger(__name__)


class ConfigRepository:
    """Configuration source for poller intervals and alert settings."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, key: str) -> str | None:
        """Get the raw value for a key, or None if absent."""
        sql = "SELECT value FROM bot_config WHERE key = $1"
        return await self._db.fetchval(sql, key)

    async def get_many(self, keys: list[str]) -> dict[str, str]:
        """Get raw values for several keys; absent keys are omitted."""
        sql = "SELECT key, value FROM bot_config WHERE key = ANY($1::text[])"
        rows = await self._db.fetch(sql, keys)
        return {row["key"]: row["value"] for row in rows}

    async def get_int(self, key: str) -> int:
        """Get a value parsed as an integer.

        Raises:
            ConfigurationError: If the key is missing or not an integer.
        """
        value = await self.get(key)
        return parse_int(key, value)

    async def set(self, key: str, value: str) -> None:
        """Insert or replace a value."""
        sql = """
            INSERT INTO bot_config (key, value, updated_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (key) DO UPDATE
            SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
        """
        await self._db.execute(sql, key, value, datetime.now(timezone.utc))

    async def seed_defaults(self, defaults: dict[str, str] | None = None) -> int:
        """Insert default values for keys that are not set yet.

        Existing values are never overwritten.

        Returns:
            Number of keys seeded.
        """
        defaults = defaults if defaults is not None else DEFAULT_VALUES
        now = datetime.now(timezone.utc)
        sql = """
            INSERT INTO bot_config (key, value, updated_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (key) DO NOTHING
            RETURNING key
        """
        seeded = 0
        for key, value in defaults.items():
            if await self._db.fetchval(sql, key, value, now) is not None:
                seeded += 1
        if seeded:
            logger.info("Seeded %d default config values", seeded)
        return seeded


def parse_int(key: str, value: str | None) -> int:
    """Parse a stored config value as an int, raising ConfigurationError."""
    if value is None:
        raise ConfigurationError(key)
    try:
        return int(value.strip())
    except (ValueError, AttributeError):
        raise ConfigurationError(key, value) from None
