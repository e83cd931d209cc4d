"""
Dependency injection for FastAPI endpoints.
"""

import httpx

from src.alerts.config import AlertConfig
from src.alerts.dispatcher import ThresholdAlertDispatcher
from src.alerts.repository import DeliveryReceiptRepository, SubscriberRepository
from src.alerts.sinks import NotificationConfig, build_sink
from src.claims.config import ClaimsConfig
from src.claims.repository import ClaimRepository
from src.claims.service import ClaimService
from src.runtime_config.repository import ConfigRepository
from src.runtime_config.service import RuntimeConfigService
from src.scheduler.config import PollerName
from src.scheduler.slots import IntervalSlot
from src.storage.database import Database

# Global service instances (initialized on first request)
_database: Database | None = None
_claim_service: ClaimService | None = None
_sink_client: httpx.AsyncClient | None = None

# Set by `status-pulse run --with-api`; None when the API runs on its own
_live_slots: dict[PollerName, IntervalSlot] | None = None


def set_live_slots(slots: dict[PollerName, IntervalSlot] | None) -> None:
    """Share the supervisor's interval slots with the admin routes."""
    global _live_slots
    _live_slots = slots


def has_live_slots() -> bool:
    return _live_slots is not None


def set_database(database: Database | None) -> None:
    """Reuse an already connected pool instead of opening a second one."""
    global _database
    _database = database


async def get_database() -> Database:
    """Get the shared database, connecting on first use."""
    global _database

    if _database is None:
        _database = Database()
    if not _database.is_connected:
        await _database.connect()

    return _database


async def get_config_repository() -> ConfigRepository:
    return ConfigRepository(await get_database())


async def get_runtime_config_service() -> RuntimeConfigService:
    """Runtime config writes; live only when slots were shared."""
    return RuntimeConfigService(await get_config_repository(), slots=_live_slots)


async def get_claim_service() -> ClaimService:
    """
    Get the claim service.

    Creates a singleton wired to the configured notification sink. The
    webhook sink shares one HTTP client across deliveries.
    """
    global _claim_service, _sink_client

    if _claim_service is None:
        database = await get_database()
        notification_config = NotificationConfig()
        if notification_config.sink == "webhook":
            _sink_client = httpx.AsyncClient(timeout=notification_config.timeout_seconds)

        claims = ClaimRepository(database)
        subscribers = SubscriberRepository(database)
        config_repo = ConfigRepository(database)
        dispatcher = ThresholdAlertDispatcher(
            claims=claims,
            subscribers=subscribers,
            receipts=DeliveryReceiptRepository(database),
            config_repo=config_repo,
            sink=build_sink(notification_config, client=_sink_client),
            config=AlertConfig(),
            max_concurrent_deliveries=notification_config.max_concurrent_deliveries,
        )
        _claim_service = ClaimService(
            claims=claims,
            subscribers=subscribers,
            config_repo=config_repo,
            dispatcher=dispatcher,
            config=ClaimsConfig(),
        )

    return _claim_service


async def cleanup_dependencies(close_database: bool = True) -> None:
    """Clean up global dependencies on shutdown."""
    global _database, _claim_service, _sink_client, _live_slots

    _claim_service = None
    _live_slots = None

    if _sink_client is not None:
        await _sink_client.aclose()
        _sink_client = None

    if _database is not None:
        if close_database:
            await _database.close()
        _database = None
