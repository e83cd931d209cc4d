"""Schema definitions for alert fan-out.

Subscribers come from two populations: scoped (a community with a
destination channel) and direct (a single user). A DeliveryReceipt maps
1:1 to the ``delivery_receipts`` table; its unique key
(subscriber_kind, subscriber_id, category, dedup_reference) is what makes
delivery at-most-once.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

ALERT_TYPE_THRESHOLD = "threshold"


class SubscriberKind(str, enum.Enum):
    GUILD = "guild"
    USER = "user"


@dataclass(frozen=True)
class Subscriber:
    """A notification destination.

    Attributes:
        kind: Scoped (guild) or direct (user).
        id: Guild or user id.
        destination: Channel id for guilds; None for users.
    """

    kind: SubscriberKind
    id: str
    destination: str | None = None

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "destination": self.destination,
        }


@dataclass
class DeliveryReceipt:
    """Reservation row for one (subscriber, category, dedup_reference)."""

    subscriber_kind: str
    subscriber_id: str
    category: str
    dedup_reference: str
    notified_at: datetime
    alert_type: str = ALERT_TYPE_THRESHOLD
    id: int | None = None


@dataclass
class AlertNotification:
    """Payload handed to a notification sink.

    Attributes:
        category: Claim category that crossed the threshold.
        actor_count: Distinct actors in the window.
        window_minutes: Aggregation window.
        threshold: Threshold that was crossed.
        recent_claims: Newest claim timestamps, newest first.
        dedup_reference: Bucketed notification identity.
        triggered_at: Evaluation time.
    """

    category: str
    actor_count: int
    window_minutes: int
    threshold: int
    recent_claims: list[datetime]
    dedup_reference: str
    triggered_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_type": ALERT_TYPE_THRESHOLD,
            "category": self.category,
            "actor_count": self.actor_count,
            "window_minutes": self.window_minutes,
            "threshold": self.threshold,
            "recent_claims": [ts.isoformat() for ts in self.recent_claims],
            "dedup_reference": self.dedup_reference,
            "triggered_at": self.triggered_at.isoformat(),
        }


class DeliveryResult(str, enum.Enum):
    DELIVERED = "delivered"
    ALREADY_SENT = "already_sent"
    RESERVE_FAILED = "reserve_failed"
    DELIVERY_FAILED = "delivery_failed"


@dataclass
class DispatchSummary:
    """What one threshold evaluation did."""

    category: str
    evaluated_at: datetime
    outcome: str = "pending"
    actor_count: int = 0
    threshold: int | None = None
    dedup_reference: str | None = None
    results: dict[str, int] = field(default_factory=dict)

    @property
    def triggered(self) -> bool:
        return self.outcome == "triggered"

    def count(self, result: DeliveryResult) -> int:
        return self.results.get(result.value, 0)

    def add(self, result: DeliveryResult) -> None:
        self.results[result.value] = self.results.get(result.value, 0) + 1
