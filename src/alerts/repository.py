"""Repositories for delivery receipts and subscribers.

Follows the project's asyncpg repository pattern. Receipt reservation
relies on the ``delivery_receipts`` unique key: a conflicting insert is
surfaced as ``UniqueViolation`` and every other driver failure as
``StorageError``, so the dispatcher can tell "already sent" from "store
unavailable".
"""

import logging
from datetime import datetime, timezone

import asyncpg

from src.alerts.schemas import DeliveryReceipt, Subscriber, SubscriberKind
from src.storage.database import Database
from src.storage.errors import StorageError, translate_unique_violation

logger = logging.getLogger(__name__)


class DeliveryReceiptRepository:
    """Reserve-then-deliver receipts."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def reserve(self, receipt: DeliveryReceipt) -> int:
        """Insert a receipt, claiming the delivery slot.

        Returns:
            The new receipt id, needed for rollback.

        Raises:
            UniqueViolation: The slot is already reserved.
            StorageError: Any other storage failure.
        """
        sql = """
            INSERT INTO delivery_receipts (
                subscriber_kind, subscriber_id, alert_type,
                category, dedup_reference, notified_at
            ) VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id
        """
        try:
            return await self._db.fetchval(
                sql,
                receipt.subscriber_kind,
                receipt.subscriber_id,
                receipt.alert_type,
                receipt.category,
                receipt.dedup_reference,
                receipt.notified_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise translate_unique_violation(e) from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError(f"Failed to reserve delivery receipt: {e}") from e

    async def delete_by_id(self, receipt_id: int) -> bool:
        """Release a reservation.

        Raises:
            StorageError: If the delete could not be executed.
        """
        try:
            status = await self._db.execute(
                "DELETE FROM delivery_receipts WHERE id = $1", receipt_id
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError(f"Failed to delete receipt {receipt_id}: {e}") from e
        return status.endswith(" 1")

    async def exists(
        self,
        subscriber_kind: str,
        subscriber_id: str,
        category: str,
        dedup_reference: str,
    ) -> bool:
        sql = """
            SELECT 1 FROM delivery_receipts
            WHERE subscriber_kind = $1 AND subscriber_id = $2
              AND category = $3 AND dedup_reference = $4
        """
        return await self._db.fetchval(
            sql, subscriber_kind, subscriber_id, category, dedup_reference
        ) is not None

    async def count_for_reference(self, category: str, dedup_reference: str) -> int:
        sql = """
            SELECT COUNT(*) FROM delivery_receipts
            WHERE category = $1 AND dedup_reference = $2
        """
        return await self._db.fetchval(sql, category, dedup_reference) or 0


class SubscriberRepository:
    """Read access to both subscriber populations, plus registration helpers."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_alert_targets(self) -> list[Subscriber]:
        """Enabled guilds that have a channel, then enabled users."""
        guild_rows = await self._db.fetch(
            """
            SELECT guild_id, channel_id FROM guild_configs
            WHERE enabled AND channel_id IS NOT NULL
            ORDER BY guild_id
            """
        )
        user_rows = await self._db.fetch(
            "SELECT user_id FROM user_configs WHERE enabled ORDER BY user_id"
        )
        subscribers = [
            Subscriber(SubscriberKind.GUILD, r["guild_id"], r["channel_id"])
            for r in guild_rows
        ]
        subscribers.extend(Subscriber(SubscriberKind.USER, r["user_id"]) for r in user_rows)
        return subscribers

    async def is_enabled(self, kind: SubscriberKind, subscriber_id: str) -> bool:
        if kind == SubscriberKind.GUILD:
            sql = "SELECT enabled FROM guild_configs WHERE guild_id = $1"
        else:
            sql = "SELECT enabled FROM user_configs WHERE user_id = $1"
        return bool(await self._db.fetchval(sql, subscriber_id))

    async def register_guild(self, guild_id: str, channel_id: str | None) -> None:
        now = datetime.now(timezone.utc)
        sql = """
            INSERT INTO guild_configs (guild_id, channel_id, enabled, created_at, updated_at)
            VALUES ($1, $2, TRUE, $3, $3)
            ON CONFLICT (guild_id) DO UPDATE
            SET channel_id = EXCLUDED.channel_id, enabled = TRUE, updated_at = EXCLUDED.updated_at
        """
        await self._db.execute(sql, guild_id, channel_id, now)

    async def register_user(self, user_id: str) -> None:
        now = datetime.now(timezone.utc)
        sql = """
            INSERT INTO user_configs (user_id, enabled, created_at, updated_at)
            VALUES ($1, TRUE, $2, $2)
            ON CONFLICT (user_id) DO UPDATE
            SET enabled = TRUE, updated_at = EXCLUDED.updated_at
        """
        await self._db.execute(sql, user_id, now)

    async def disable(self, kind: SubscriberKind, subscriber_id: str) -> bool:
        now = datetime.now(timezone.utc)
        if kind == SubscriberKind.GUILD:
            sql = "UPDATE guild_configs SET enabled = FALSE, updated_at = $2 WHERE guild_id = $1"
        else:
            sql = "UPDATE user_configs SET enabled = FALSE, updated_at = $2 WHERE user_id = $1"
        status = await self._db.execute(sql, subscriber_id, now)
        return status.endswith(" 1")

    async def count_enabled(self) -> dict[str, int]:
        guilds = await self._db.fetchval(
            "SELECT COUNT(*) FROM guild_configs WHERE enabled"
        )
        users = await self._db.fetchval(
            "SELECT COUNT(*) FROM user_configs WHERE enabled"
        )
        return {SubscriberKind.GUILD.value: guilds or 0, SubscriberKind.USER.value: users or 0}
