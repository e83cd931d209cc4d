"""Metrics reconciler.

Pulls every CloudFront metric series and stores each point once per
(metric_name, timestamp). Each endpoint is fetched independently: one
failing endpoint is skipped for this cycle, and only a cycle where every
endpoint fails counts as a fetch failure. Points are stored verbatim,
with no aggregation.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from src.collector.client import StatusPageClient
from src.collector.http_client import FetchError
from src.collector.schemas import CLOUDFRONT_METRICS, MetricDefinition
from src.observability.metrics import MetricsCollector
from src.reconcile.base import Clock, Reconciler
from src.reconcile.repository import MetricRepository
from src.reconcile.schemas import MetricSample, ReconcileOutcome

logger = structlog.get_logger(__name__)


@dataclass
class MetricsSnapshot:
    """Raw series per metric, plus the endpoints that failed this cycle."""

    series: dict[str, tuple[MetricDefinition, list[Any]]] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)


def parse_timestamp(raw: Any) -> datetime | None:
    """Convert an epoch-seconds value to an aware UTC datetime.

    Returns None for anything that is not a finite, non-negative number
    representable as a datetime.
    """
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if not math.isfinite(raw) or raw < 0:
        return None
    try:
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_value(raw: Any) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    value = float(raw)
    return value if math.isfinite(value) else None


class MetricsReconciler(Reconciler[MetricsSnapshot]):
    kind = "metrics"

    def __init__(
        self,
        client: StatusPageClient,
        repository: MetricRepository,
        metrics_defs: tuple[MetricDefinition, ...] = CLOUDFRONT_METRICS,
        interval_sec: int = 60,
        clock: Clock | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        super().__init__(clock=clock, metrics=metrics)
        self._client = client
        self._repo = repository
        self._defs = metrics_defs
        self._interval_sec = interval_sec

    async def fetch(self) -> MetricsSnapshot:
        snapshot = MetricsSnapshot()
        for definition in self._defs:
            try:
                points = await self._client.fetch_metric(definition)
            except FetchError as e:
                snapshot.failed.append(definition.name)
                logger.warning(
                    "Failed to poll metric, skipping",
                    metric=definition.name,
                    error=str(e),
                )
                continue
            snapshot.series[definition.name] = (definition, points)

        if self._defs and not snapshot.series:
            raise FetchError(f"All {len(self._defs)} metric endpoints failed")
        return snapshot

    async def insert_children(
        self, snapshot: MetricsSnapshot, now: datetime, outcome: ReconcileOutcome
    ) -> None:
        outcome.skipped += len(snapshot.failed)

        for name, (definition, points) in snapshot.series.items():
            inserted = 0
            for point in points:
                sample = self._to_sample(definition, point)
                if sample is None:
                    outcome.skipped += 1
                    continue
                if await self._repo.insert_if_absent(sample):
                    inserted += 1

            outcome.inserted += inserted
            if inserted:
                logger.debug(
                    "Inserted metric data points",
                    metric=name,
                    count=inserted,
                )

    def _to_sample(self, definition: MetricDefinition, point: Any) -> MetricSample | None:
        if not isinstance(point, (list, tuple)) or len(point) != 2:
            logger.warning(
                "Malformed metric point, skipping",
                metric=definition.name,
                point=repr(point)[:100],
            )
            return None

        raw_ts, raw_value = point
        timestamp = parse_timestamp(raw_ts)
        if timestamp is None:
            logger.warning(
                "Invalid timestamp, skipping",
                metric=definition.name,
                timestamp=repr(raw_ts)[:100],
            )
            return None

        value = parse_value(raw_value)
        if value is None:
            logger.warning(
                "Invalid metric value, skipping",
                metric=definition.name,
                value=repr(raw_value)[:100],
            )
            return None

        return MetricSample(
            metric_name=definition.name,
            timestamp=timestamp,
            value=value,
            unit=definition.unit,
            interval_sec=self._interval_sec,
        )
