"""Notification sink implementations for alert delivery.

Provides an ABC for sinks plus two implementations: a log sink for local
development and a webhook sink that hands notifications to the chat
bridge over HTTP. Sinks raise ``DeliveryError`` subclasses instead of
returning a flag so the dispatcher can tell a dead destination from a
transient failure.
"""

import logging
from abc import ABC, abstractmethod

import httpx
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.alerts.schemas import AlertNotification, Subscriber

logger = logging.getLogger(__name__)

# Statuses that mean the destination itself is gone or forbidden
_UNUSABLE_STATUSES = frozenset({401, 403, 404, 410})


class NotificationConfig(BaseSettings):
    """Configuration for notification delivery."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    sink: str = Field(
        default="log",
        pattern="^(log|webhook)$",
        description="Delivery backend: 'log' or 'webhook'",
    )
    webhook_url: str | None = Field(
        default=None,
        description="Relay endpoint that forwards notifications to the chat platform",
    )
    webhook_token: str | None = Field(
        default=None,
        description="Bearer token sent to the relay",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="Per-delivery HTTP timeout",
    )
    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Deliveries in flight at once during one fan-out",
    )


class DeliveryError(Exception):
    """A notification could not be delivered."""

    def __init__(self, subscriber: Subscriber, reason: str):
        super().__init__(f"Delivery to {subscriber.kind.value}:{subscriber.id} failed: {reason}")
        self.subscriber = subscriber
        self.reason = reason


class DestinationUnusableError(DeliveryError):
    """The destination is gone or we lost permission. Retrying will not help."""


class TransientDeliveryError(DeliveryError):
    """Temporary failure; a later attempt may succeed."""


class NotificationSink(ABC):
    """Abstract base for notification delivery backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this sink (e.g. 'log', 'webhook')."""

    @abstractmethod
    async def deliver(self, subscriber: Subscriber, notification: AlertNotification) -> None:
        """Deliver a notification to one subscriber.

        Raises:
            DestinationUnusableError: Destination cannot accept messages.
            TransientDeliveryError: Temporary failure.
        """


class LogSink(NotificationSink):
    """Writes notifications to the log. Development default."""

    @property
    def name(self) -> str:
        return "log"

    async def deliver(self, subscriber: Subscriber, notification: AlertNotification) -> None:
        logger.info(
            "Alert for %s:%s (%s): %d reports of '%s' in %d min [%s]",
            subscriber.kind.value,
            subscriber.id,
            subscriber.destination or "direct",
            notification.actor_count,
            notification.category,
            notification.window_minutes,
            notification.dedup_reference,
        )


class WebhookSink(NotificationSink):
    """POSTs ``{subscriber, notification}`` JSON to a relay endpoint.

    Uses one shared ``httpx.AsyncClient`` when given, otherwise a
    short-lived client per call.
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "webhook"

    def _build_payload(self, subscriber: Subscriber, notification: AlertNotification) -> dict:
        return {
            "subscriber": subscriber.describe(),
            "notification": notification.to_dict(),
        }

    async def deliver(self, subscriber: Subscriber, notification: AlertNotification) -> None:
        payload = self._build_payload(subscriber, notification)
        try:
            if self._client is not None:
                resp = await self._client.post(
                    self._url, json=payload, headers=self._headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, json=payload, headers=self._headers)
        except httpx.TimeoutException as e:
            raise TransientDeliveryError(subscriber, "timed out") from e
        except httpx.TransportError as e:
            raise TransientDeliveryError(subscriber, f"transport error: {e}") from e
        except httpx.HTTPError as e:
            raise TransientDeliveryError(subscriber, f"http error: {e}") from e

        if resp.is_success:
            return

        reason = f"relay returned {resp.status_code}"
        if resp.status_code in _UNUSABLE_STATUSES:
            raise DestinationUnusableError(subscriber, reason)
        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientDeliveryError(subscriber, reason)
        # Remaining 4xx: the relay rejected this destination/payload
        raise DestinationUnusableError(subscriber, reason)


def build_sink(
    config: NotificationConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> NotificationSink:
    """Create the sink selected by configuration."""
    config = config or NotificationConfig()
    if config.sink == "webhook":
        if not config.webhook_url:
            raise ValueError("NOTIFICATIONS_WEBHOOK_URL is required for the webhook sink")
        return WebhookSink(
            config.webhook_url,
            token=config.webhook_token,
            timeout=config.timeout_seconds,
            client=client,
        )
    return LogSink()
