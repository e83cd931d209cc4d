"""Threshold alerts: distinct-actor counting, dedup buckets and reserve-then-deliver fan-out."""

from src.alerts.config import AlertConfig
from src.alerts.dispatcher import ThresholdAlertDispatcher, dedup_reference
from src.alerts.repository import DeliveryReceiptRepository, SubscriberRepository
from src.alerts.schemas import (
    AlertNotification,
    DeliveryReceipt,
    DeliveryResult,
    DispatchSummary,
    Subscriber,
    SubscriberKind,
)
from src.alerts.sinks import (
    DeliveryError,
    DestinationUnusableError,
    LogSink,
    NotificationConfig,
    NotificationSink,
    TransientDeliveryError,
    WebhookSink,
    build_sink,
)

__all__ = [
    "AlertConfig",
    "AlertNotification",
    "DeliveryError",
    "DeliveryReceipt",
    "DeliveryReceiptRepository",
    "DeliveryResult",
    "DestinationUnusableError",
    "DispatchSummary",
    "LogSink",
    "NotificationConfig",
    "NotificationSink",
    "Subscriber",
    "SubscriberKind",
    "SubscriberRepository",
    "ThresholdAlertDispatcher",
    "TransientDeliveryError",
    "WebhookSink",
    "build_sink",
    "dedup_reference",
]
