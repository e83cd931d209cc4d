"""Threshold alert dispatcher.

Runs after every accepted claim. When enough distinct actors have claimed
the same category inside the configured window, every subscriber gets one
notification per dedup bucket:

    reserve receipt -> deliver -> (on failure) delete receipt

The receipt's unique key makes concurrent evaluations safe without locks:
whichever insert lands first owns the delivery, the rest see a
UniqueViolation and skip. A failed delivery releases its reservation so a
later evaluation in the same bucket can retry it.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from src.alerts.config import AlertConfig, validate_threshold, validate_window
from src.alerts.repository import DeliveryReceiptRepository, SubscriberRepository
from src.alerts.schemas import (
    ALERT_TYPE_THRESHOLD,
    AlertNotification,
    DeliveryReceipt,
    DeliveryResult,
    DispatchSummary,
    Subscriber,
)
from src.alerts.sinks import DeliveryError, DestinationUnusableError, NotificationSink
from src.claims.repository import ClaimRepository
from src.observability.metrics import MetricsCollector, get_metrics
from src.runtime_config import keys
from src.runtime_config.errors import ConfigurationError
from src.runtime_config.repository import ConfigRepository
from src.storage.errors import StorageError, UniqueViolation

logger = structlog.get_logger(__name__)


def dedup_reference(category: str, now: datetime, bucket_minutes: int = 15) -> str:
    """Notification identity for a category within one wall-clock bucket.

    Example: ``threshold_login_2026-01-10T14:30`` for any time in
    14:30-14:44 UTC with 15-minute buckets.
    """
    now = now.astimezone(timezone.utc)
    block = (now.minute // bucket_minutes) * bucket_minutes
    return f"{ALERT_TYPE_THRESHOLD}_{category}_{now:%Y-%m-%dT%H}:{block:02d}"


class ThresholdAlertDispatcher:
    """Evaluates a category's claim count and fans out notifications."""

    def __init__(
        self,
        claims: ClaimRepository,
        subscribers: SubscriberRepository,
        receipts: DeliveryReceiptRepository,
        config_repo: ConfigRepository,
        sink: NotificationSink,
        config: AlertConfig | None = None,
        max_concurrent_deliveries: int = 10,
        clock: Callable[[], datetime] | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._claims = claims
        self._subscribers = subscribers
        self._receipts = receipts
        self._config_repo = config_repo
        self._sink = sink
        self._config = config or AlertConfig()
        self._max_concurrent = max_concurrent_deliveries
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._metrics = metrics

    def _get_metrics(self) -> MetricsCollector:
        if self._metrics is None:
            self._metrics = get_metrics()
        return self._metrics

    async def evaluate_and_dispatch(
        self, category: str, now: datetime | None = None
    ) -> DispatchSummary:
        """Check the threshold for a category and notify every subscriber once.

        Args:
            category: Claim category to evaluate.
            now: Evaluation time; defaults to the clock.

        Returns:
            Summary of the evaluation and per-subscriber results.
        """
        now = now or self._clock()
        summary = DispatchSummary(category=category, evaluated_at=now)

        try:
            threshold = await self._config_repo.get_int(keys.REPORT_THRESHOLD)
            window = await self._config_repo.get_int(keys.REPORT_INTERVAL)
            _check_bounds(threshold, window)
        except ConfigurationError as e:
            # Never guess a safety-relevant threshold
            logger.error(
                "Alert config missing or invalid, skipping evaluation",
                category=category,
                key=e.key,
                value=e.value,
            )
            return self._finish(summary, "config_error")

        since = now - timedelta(minutes=window)
        count = await self._claims.count_distinct_actors(category, since)
        summary.actor_count = count
        summary.threshold = threshold

        logger.info(
            "Checking alert threshold",
            category=category,
            count=count,
            threshold=threshold,
            window_minutes=window,
        )
        if count < threshold:
            return self._finish(summary, "below_threshold")

        recent = await self._claims.recent_timestamps(
            category, since, limit=self._config.recent_claims_limit
        )
        reference = dedup_reference(category, now, self._config.dedup_bucket_minutes)
        summary.dedup_reference = reference

        notification = AlertNotification(
            category=category,
            actor_count=count,
            window_minutes=window,
            threshold=threshold,
            recent_claims=recent,
            dedup_reference=reference,
            triggered_at=now,
        )

        targets = await self._subscribers.list_alert_targets()
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def bounded(subscriber: Subscriber) -> DeliveryResult:
            async with semaphore:
                return await self._reserve_and_deliver(subscriber, notification)

        results = await asyncio.gather(*(bounded(s) for s in targets))
        for subscriber, result in zip(targets, results):
            summary.add(result)
            self._get_metrics().record_delivery(subscriber.kind.value, result.value)

        logger.info(
            "Threshold alert dispatched",
            category=category,
            dedup_reference=reference,
            subscribers=len(targets),
            delivered=summary.count(DeliveryResult.DELIVERED),
            already_sent=summary.count(DeliveryResult.ALREADY_SENT),
            failed=summary.count(DeliveryResult.DELIVERY_FAILED),
        )
        return self._finish(summary, "triggered")

    async def _reserve_and_deliver(
        self, subscriber: Subscriber, notification: AlertNotification
    ) -> DeliveryResult:
        """Unreserved -> Reserved -> Delivered, or back to Unreserved on failure."""
        receipt = DeliveryReceipt(
            subscriber_kind=subscriber.kind.value,
            subscriber_id=subscriber.id,
            category=notification.category,
            dedup_reference=notification.dedup_reference,
            notified_at=notification.triggered_at,
        )

        try:
            receipt_id = await self._receipts.reserve(receipt)
        except UniqueViolation:
            return DeliveryResult.ALREADY_SENT
        except StorageError as e:
            logger.error(
                "Failed to reserve delivery, skipping subscriber",
                subscriber_kind=subscriber.kind.value,
                subscriber_id=subscriber.id,
                dedup_reference=notification.dedup_reference,
                error=str(e),
            )
            return DeliveryResult.RESERVE_FAILED

        try:
            await self._sink.deliver(subscriber, notification)
        except DeliveryError as e:
            log = logger.warning
            if isinstance(e, DestinationUnusableError):
                log = logger.info
            log(
                "Delivery failed, releasing reservation",
                subscriber_kind=subscriber.kind.value,
                subscriber_id=subscriber.id,
                dedup_reference=notification.dedup_reference,
                error_type=type(e).__name__,
                reason=e.reason,
            )
            await self._release(receipt_id, subscriber)
            return DeliveryResult.DELIVERY_FAILED
        except asyncio.CancelledError:
            await self._release(receipt_id, subscriber)
            raise
        except Exception as e:
            # Contained to this subscriber
            logger.error(
                "Sink raised unexpectedly, releasing reservation",
                subscriber_kind=subscriber.kind.value,
                subscriber_id=subscriber.id,
                dedup_reference=notification.dedup_reference,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self._release(receipt_id, subscriber)
            return DeliveryResult.DELIVERY_FAILED

        return DeliveryResult.DELIVERED

    async def _release(self, receipt_id: int, subscriber: Subscriber) -> None:
        try:
            await self._receipts.delete_by_id(receipt_id)
        except StorageError as e:
            logger.error(
                "Failed to release reservation, delivery will not be retried",
                receipt_id=receipt_id,
                subscriber_id=subscriber.id,
                error=str(e),
            )

    def _finish(self, summary: DispatchSummary, outcome: str) -> DispatchSummary:
        summary.outcome = outcome
        self._get_metrics().record_alert_evaluation(summary.category, outcome)
        return summary


def _check_bounds(threshold: int, window: int) -> None:
    try:
        validate_threshold(threshold)
    except ValueError:
        raise ConfigurationError(keys.REPORT_THRESHOLD, str(threshold)) from None
    try:
        validate_window(window)
    except ValueError:
        raise ConfigurationError(keys.REPORT_INTERVAL, str(window)) from None
