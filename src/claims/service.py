"""
Claim submission service.

Validates a claim, checks the claimant is a registered subscriber, runs it
through the cooldown guard and, when accepted, triggers a threshold
evaluation for the category. A dispatch failure is logged and never fails
the submission itself.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from src.alerts.dispatcher import ThresholdAlertDispatcher
from src.alerts.repository import SubscriberRepository
from src.alerts.schemas import DispatchSummary, SubscriberKind
from src.claims.config import ClaimsConfig
from src.claims.cooldown import CooldownGuard
from src.claims.repository import ClaimRepository
from src.claims.schemas import (
    KNOWN_CATEGORIES,
    Claim,
    ClaimAccepted,
    InvalidClaimError,
    NotRegisteredError,
)
from src.observability.metrics import MetricsCollector, get_metrics
from src.runtime_config import keys
from src.runtime_config.errors import ConfigurationError
from src.runtime_config.repository import ConfigRepository

logger = structlog.get_logger(__name__)


@dataclass
class SubmissionOutcome:
    """Result of one claim submission.

    Attributes:
        accepted: Whether the claim was stored.
        claim: The stored claim (accepted) or the one holding the cooldown.
        retry_after: When the actor may claim again (rejections only).
        similar_count: Other distinct actors with the same category in the window.
        dispatch: Threshold evaluation summary, if one ran.
    """

    accepted: bool
    claim: Claim
    retry_after: datetime | None = None
    similar_count: int = 0
    dispatch: DispatchSummary | None = None


class ClaimService:
    """Entry point for claim submissions."""

    def __init__(
        self,
        claims: ClaimRepository,
        subscribers: SubscriberRepository,
        config_repo: ConfigRepository,
        dispatcher: ThresholdAlertDispatcher,
        config: ClaimsConfig | None = None,
        guard: CooldownGuard | None = None,
        clock: Callable[[], datetime] | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._config = config or ClaimsConfig()
        self._claims = claims
        self._subscribers = subscribers
        self._config_repo = config_repo
        self._dispatcher = dispatcher
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._guard = guard or CooldownGuard(
            claims,
            cooldown=timedelta(minutes=self._config.cooldown_minutes),
            clock=self._clock,
        )
        self._metrics = metrics

    def _get_metrics(self) -> MetricsCollector:
        if self._metrics is None:
            self._metrics = get_metrics()
        return self._metrics

    async def submit(
        self,
        actor_id: str,
        category: str,
        scope_id: str | None = None,
        content: str | None = None,
        now: datetime | None = None,
    ) -> SubmissionOutcome:
        """Submit a claim.

        Raises:
            InvalidClaimError: Unknown category or content too long.
            NotRegisteredError: Scope (or actor, when unscoped) not enabled.
        """
        category = self.validate_category(category)
        content = self.validate_content(content)

        if self._config.require_registration:
            await self._check_registration(actor_id, scope_id)

        result = await self._guard.try_claim(
            actor_id,
            category,
            scope_id=scope_id,
            content=content,
            now=now,
        )

        if not isinstance(result, ClaimAccepted):
            self._get_metrics().record_claim("rejected")
            return SubmissionOutcome(
                accepted=False,
                claim=result.conflicting,
                retry_after=result.retry_after,
            )

        self._get_metrics().record_claim("accepted")
        logger.info(
            "Claim accepted",
            claim_id=result.claim.id,
            actor_id=actor_id,
            scope_id=scope_id,
            category=category,
        )

        dispatch = await self._dispatch(category, now)
        similar = await self._similar_count(category, actor_id, result.claim.created_at)
        return SubmissionOutcome(
            accepted=True,
            claim=result.claim,
            similar_count=similar,
            dispatch=dispatch,
        )

    def validate_category(self, category: str) -> str:
        normalized = (category or "").strip().lower()
        if normalized not in KNOWN_CATEGORIES:
            raise InvalidClaimError(
                "category",
                f"Unknown category {category!r}. Must be one of: {', '.join(KNOWN_CATEGORIES)}",
            )
        return normalized

    def validate_content(self, content: str | None) -> str | None:
        if content is None:
            return None
        content = content.strip()
        if not content:
            return None
        if len(content) > self._config.max_content_length:
            raise InvalidClaimError(
                "content",
                f"Content must be at most {self._config.max_content_length} characters",
            )
        return content

    async def _check_registration(self, actor_id: str, scope_id: str | None) -> None:
        if scope_id is not None:
            if not await self._subscribers.is_enabled(SubscriberKind.GUILD, scope_id):
                raise NotRegisteredError(SubscriberKind.GUILD.value, scope_id)
        elif not await self._subscribers.is_enabled(SubscriberKind.USER, actor_id):
            raise NotRegisteredError(SubscriberKind.USER.value, actor_id)

    async def _dispatch(self, category: str, now: datetime | None) -> DispatchSummary | None:
        try:
            return await self._dispatcher.evaluate_and_dispatch(category, now=now)
        except Exception as e:
            logger.error(
                "Threshold evaluation failed",
                category=category,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _similar_count(self, category: str, actor_id: str, at: datetime) -> int:
        try:
            window = await self._config_repo.get_int(keys.REPORT_INTERVAL)
        except ConfigurationError:
            window = self._config.fallback_window_minutes
        since = at - timedelta(minutes=window)
        return await self._claims.count_distinct_actors(
            category, since, exclude_actor=actor_id
        )
