"""
Cooldown guard - at most one active claim per actor per window.

No locks. Concurrent callers for the same actor converge on one winner by
reading, writing, then re-reading and arbitrating against the store:

1. Fast path: an active claim inside the window rejects immediately.
2. Insert a new claim.
3. Re-read the actor's active claims in a fresh window, earliest
   (created_at, id) first. The earliest row wins. A loser deletes its own
   row; the winner deletes every other row.

Because every caller sorts by the same total order, each one reaches the
same verdict on its own, whatever order the writes landed in.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from src.claims.repository import ClaimRepository
from src.claims.schemas import Claim, ClaimAccepted, ClaimRejected, ClaimResult

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CooldownGuard:
    """Gate claims from one actor against a sliding cooldown window."""

    def __init__(
        self,
        repository: ClaimRepository,
        cooldown: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repo = repository
        self._cooldown = cooldown
        self._clock = clock or _utc_now

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    async def try_claim(
        self,
        actor_id: str,
        category: str,
        scope_id: str | None = None,
        content: str | None = None,
        now: datetime | None = None,
        cooldown: timedelta | None = None,
    ) -> ClaimResult:
        """Record a claim unless the actor is inside their cooldown.

        Args:
            actor_id: Who is claiming.
            category: Claim category.
            scope_id: Optional community the claim belongs to.
            content: Optional free text.
            now: Submission time; defaults to the clock.
            cooldown: Window override for this call.

        Returns:
            ClaimAccepted with the stored claim, or ClaimRejected with the
            claim that holds the cooldown.
        """
        window = cooldown or self._cooldown
        submitted_at = now or self._clock()

        existing = await self._repo.find_latest_active(actor_id, submitted_at - window)
        if existing is not None:
            logger.debug("Claim rejected by cooldown", actor_id=actor_id, claim_id=existing.id)
            return self._reject(existing, window)

        mine = await self._repo.insert(
            Claim(
                actor_id=actor_id,
                category=category,
                created_at=submitted_at,
                scope_id=scope_id,
                content=content,
            )
        )

        fresh_now = now or self._clock()
        contenders = await self._repo.find_active_since(actor_id, fresh_now - window)

        if not contenders:
            # Our row was arbitrated away and no winner is visible any more
            logger.warning(
                "Claim vanished during arbitration",
                actor_id=actor_id,
                claim_id=mine.id,
            )
            return self._reject(mine, window)

        winner = contenders[0]
        if winner.id != mine.id:
            if any(c.id == mine.id for c in contenders):
                await self._repo.delete_by_id(mine.id)
            logger.info(
                "Lost concurrent claim race",
                actor_id=actor_id,
                claim_id=mine.id,
                winner_id=winner.id,
            )
            return self._reject(winner, window)

        for loser in contenders[1:]:
            await self._repo.delete_by_id(loser.id)
        if len(contenders) > 1:
            logger.info(
                "Won concurrent claim race",
                actor_id=actor_id,
                claim_id=mine.id,
                removed=len(contenders) - 1,
            )
        return ClaimAccepted(claim=mine)

    @staticmethod
    def _reject(conflicting: Claim, window: timedelta) -> ClaimRejected:
        return ClaimRejected(
            conflicting=conflicting,
            retry_after=conflicting.created_at + window,
        )
