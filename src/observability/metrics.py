"""
Prometheus metrics for monitoring the collector and alert pipeline.

Defines and exposes metrics for:
- Poll cycles per poller (success / failure, latency, current interval)
- Reconciliation writes per entity kind
- Claim submissions (accepted / rejected)
- Threshold evaluations and per-subscriber deliveries

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for status-pulse.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_poll("incident", success=True, latency=0.42)
        metrics.record_delivery("guild", "delivered")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Poller metrics
        self.polls = Counter(
            "status_pulse_polls_total",
            "Total poll cycles",
            ["poller", "status"],  # status: success, failure
        )

        self.poll_latency = Histogram(
            "status_pulse_poll_latency_seconds",
            "Duration of a full fetch + reconcile cycle",
            ["poller"],
            buckets=LATENCY_BUCKETS,
        )

        self.poll_interval = Gauge(
            "status_pulse_poll_interval_seconds",
            "Current polling interval per poller",
            ["poller"],
        )

        # Reconciliation writes
        self.reconcile_writes = Counter(
            "status_pulse_reconcile_writes_total",
            "Rows written by reconcilers",
            ["kind", "action"],  # action: inserted, updated, completed
        )

        # Claims
        self.claims = Counter(
            "status_pulse_claims_total",
            "Claim submissions by outcome",
            ["result"],  # accepted, rejected
        )

        # Alerts
        self.alert_evaluations = Counter(
            "status_pulse_alert_evaluations_total",
            "Threshold evaluations by outcome",
            ["category", "outcome"],  # below_threshold, triggered, config_error
        )

        self.alert_deliveries = Counter(
            "status_pulse_alert_deliveries_total",
            "Per-subscriber delivery outcomes",
            ["subscriber_kind", "result"],  # delivered, already_sent, reserve_failed, delivery_failed
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_poll(
        self,
        poller: str,
        success: bool,
        latency: float | None = None,
    ) -> None:
        """
        Record a completed (or failed) poll cycle.

        Args:
            poller: Poller name
            success: Whether the cycle completed without error
            latency: Optional cycle duration in seconds
        """
        status = "success" if success else "failure"
        self.polls.labels(poller=poller, status=status).inc()

        if latency is not None:
            self.poll_latency.labels(poller=poller).observe(latency)

    def set_poll_interval(self, poller: str, seconds: int) -> None:
        """Publish the interval a poller is currently running at."""
        self.poll_interval.labels(poller=poller).set(seconds)

    def record_reconcile(
        self,
        kind: str,
        inserted: int = 0,
        updated: int = 0,
        completed: int = 0,
    ) -> None:
        """
        Record rows written by one reconciliation pass.

        Args:
            kind: Entity kind (incident, maintenance, status, metrics)
            inserted: New rows
            updated: Changed rows
            completed: Rows moved to a terminal state
        """
        for action, count in (
            ("inserted", inserted),
            ("updated", updated),
            ("completed", completed),
        ):
            if count:
                self.reconcile_writes.labels(kind=kind, action=action).inc(count)

    def record_claim(self, result: str) -> None:
        """Record a claim submission outcome."""
        self.claims.labels(result=result).inc()

    def record_alert_evaluation(self, category: str, outcome: str) -> None:
        """Record the outcome of a threshold evaluation."""
        self.alert_evaluations.labels(category=category, outcome=outcome).inc()

    def record_delivery(self, subscriber_kind: str, result: str) -> None:
        """Record a single subscriber delivery outcome."""
        self.alert_deliveries.labels(
            subscriber_kind=subscriber_kind, result=result
        ).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
