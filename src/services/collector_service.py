"""
Collector service - wires storage, upstream client and reconcilers into
the poll supervisor.

Startup order:
- connect to PostgreSQL (retried with backoff)
- load every poller interval (fatal if any is missing or invalid)
- open one shared HTTP client
- run the supervisor until stopped

Usage:
    service = CollectorService()
    slots = await service.setup()   # optional; start() calls it
    await service.start()           # Runs until stop()
"""

import asyncio
from typing import Any

import asyncpg
import structlog

from src.collector.client import StatusPageClient
from src.collector.config import CollectorConfig
from src.collector.http_client import HTTPClient, RetryConfig
from src.config.settings import get_settings
from src.observability.metrics import MetricsCollector, get_metrics
from src.reconcile.base import Reconciler
from src.reconcile.incidents import IncidentReconciler
from src.reconcile.maintenances import MaintenanceReconciler
from src.reconcile.metrics import MetricsReconciler
from src.reconcile.repository import (
    IncidentRepository,
    MaintenanceRepository,
    MetricRepository,
    StatusLogRepository,
)
from src.reconcile.schemas import ReconcileOutcome
from src.reconcile.status import StatusReconciler
from src.runtime_config.repository import ConfigRepository
from src.scheduler.config import PollerName
from src.scheduler.slots import IntervalSlot, load_interval_slots
from src.scheduler.supervisor import PollerDefinition, PollSupervisor
from src.services.backoff import ExponentialBackoff
from src.storage.database import Database

logger = structlog.get_logger(__name__)


async def connect_with_retry(database: Database, backoff: ExponentialBackoff | None = None) -> None:
    """Connect the pool, retrying transient connection failures."""
    if backoff is None:
        settings = get_settings()
        backoff = ExponentialBackoff(
            base_delay=settings.worker_backoff_base_delay,
            max_delay=settings.worker_backoff_max_delay,
            max_attempts=settings.worker_max_consecutive_failures,
        )

    while True:
        try:
            await database.connect()
            return
        except (OSError, asyncpg.CannotConnectNowError) as e:
            if backoff.exhausted:
                logger.error(
                    "Giving up on database connection",
                    attempts=backoff.attempt,
                    error=str(e),
                )
                raise
            delay = backoff.next_delay()
            logger.warning(
                "Database not reachable, retrying",
                attempt=backoff.attempt,
                delay_seconds=round(delay, 2),
                error=str(e),
            )
            await asyncio.sleep(delay)


def build_reconcilers(
    client: StatusPageClient,
    database: Database,
    config: CollectorConfig,
    metrics: MetricsCollector | None = None,
) -> dict[PollerName, Reconciler]:
    """One reconciler per poller, sharing the client and the pool."""
    return {
        PollerName.STATUS: StatusReconciler(
            client, StatusLogRepository(database), metrics=metrics
        ),
        PollerName.INCIDENT: IncidentReconciler(
            client, IncidentRepository(database), metrics=metrics
        ),
        PollerName.MAINTENANCE: MaintenanceReconciler(
            client, MaintenanceRepository(database), metrics=metrics
        ),
        PollerName.METRICS: MetricsReconciler(
            client,
            MetricRepository(database),
            interval_sec=config.metric_interval_seconds,
            metrics=metrics,
        ),
    }


class CollectorService:
    """
    Runs every poller against the upstream status page.

    Owns the HTTP client; owns the database only when it created it.
    """

    def __init__(
        self,
        database: Database | None = None,
        config: CollectorConfig | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._db = database or Database()
        self._owns_db = database is None
        self._config = config or CollectorConfig()
        self._metrics = metrics or get_metrics()

        self._http: HTTPClient | None = None
        self._slots: dict[PollerName, IntervalSlot] | None = None
        self._supervisor: PollSupervisor | None = None

    @property
    def database(self) -> Database:
        return self._db

    @property
    def slots(self) -> dict[PollerName, IntervalSlot] | None:
        return self._slots

    @property
    def is_running(self) -> bool:
        return self._supervisor is not None and self._supervisor.is_running

    def _retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self._config.max_retries,
            max_backoff_seconds=self._config.max_backoff_seconds,
        )

    async def setup(self) -> dict[PollerName, IntervalSlot]:
        """Connect, load intervals and build the supervisor.

        Raises:
            ConfigurationError: A poller interval is missing or invalid.
        """
        if self._supervisor is not None:
            return self._slots

        await connect_with_retry(self._db)
        self._slots = await load_interval_slots(ConfigRepository(self._db))

        self._http = HTTPClient(self._retry_config(), timeout=self._config.http_timeout_seconds)
        await self._http.__aenter__()
        client = StatusPageClient(self._http, self._config)

        reconcilers = build_reconcilers(client, self._db, self._config, self._metrics)
        self._supervisor = PollSupervisor(
            [
                PollerDefinition(name, reconciler.poll, self._slots[name])
                for name, reconciler in reconcilers.items()
            ],
            metrics=self._metrics,
        )
        logger.info(
            "Collector service initialized",
            pollers=[p.value for p in reconcilers],
            status_api=self._config.status_api_base,
            metrics_api=self._config.metrics_api_base,
        )
        return self._slots

    async def start(self) -> None:
        """Run until stop() is called or the task is cancelled."""
        try:
            await self.setup()
            logger.info("Starting collector service")
            await self._supervisor.run()
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        logger.info("Stopping collector service")
        if self._supervisor is not None:
            await self._supervisor.stop()

    async def run_once(self, poller: PollerName) -> ReconcileOutcome:
        """Run a single poll cycle for one poller, outside the supervisor."""
        await connect_with_retry(self._db)
        try:
            async with HTTPClient(
                self._retry_config(), timeout=self._config.http_timeout_seconds
            ) as http:
                client = StatusPageClient(http, self._config)
                reconciler = build_reconcilers(client, self._db, self._config, self._metrics)[poller]
                return await reconciler.poll()
        finally:
            if self._owns_db:
                await self._db.close()

    async def health_check(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "database": await self._db.health_check() if self._db.is_connected else False,
            "intervals": {
                p.value: s.seconds for p, s in (self._slots or {}).items()
            },
        }

    async def _cleanup(self) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None
        if self._owns_db:
            await self._db.close()
        self._supervisor = None
        logger.info("Collector service cleaned up")
