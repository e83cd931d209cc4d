"""Tests for collector startup: backoff, connection retry and wiring."""

from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from src.runtime_config.errors import ConfigurationError
from src.scheduler.config import PollerName
from src.services.backoff import ExponentialBackoff
from src.services.collector_service import CollectorService, connect_with_retry
from src.storage.database import Database


class TestExponentialBackoff:
    def test_grows_and_caps_without_jitter(self):
        backoff = ExponentialBackoff(base_delay=1.0, max_delay=5.0, jitter_range=0.0)

        delays = [backoff.next_delay() for _ in range(5)]

        assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]
        assert backoff.attempt == 5

    def test_jitter_stays_in_range(self):
        backoff = ExponentialBackoff(base_delay=10.0, max_delay=10.0, jitter_range=0.5)
        for _ in range(50):
            assert 5.0 <= backoff.next_delay() <= 15.0

    def test_exhausted_and_reset(self):
        backoff = ExponentialBackoff(max_attempts=2, jitter_range=0.0)
        assert not backoff.exhausted
        backoff.next_delay()
        backoff.next_delay()
        assert backoff.exhausted

        backoff.reset()
        assert backoff.attempt == 0
        assert not backoff.exhausted

    def test_unbounded_never_exhausts(self):
        backoff = ExponentialBackoff()
        for _ in range(100):
            backoff.next_delay()
        assert not backoff.exhausted


class TestConnectWithRetry:
    @pytest.mark.asyncio
    async def test_retries_until_connected(self):
        db = AsyncMock(spec=Database)
        db.connect.side_effect = [ConnectionRefusedError(), OSError("unreachable"), None]
        backoff = ExponentialBackoff(base_delay=0.1, jitter_range=0.0, max_attempts=5)

        with patch("src.services.collector_service.asyncio.sleep", new=AsyncMock()) as sleep:
            await connect_with_retry(db, backoff)

        assert db.connect.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_gives_up_when_exhausted(self):
        db = AsyncMock(spec=Database)
        db.connect.side_effect = asyncpg.CannotConnectNowError("starting up")
        backoff = ExponentialBackoff(base_delay=0.1, jitter_range=0.0, max_attempts=2)

        with patch("src.services.collector_service.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(asyncpg.CannotConnectNowError):
                await connect_with_retry(db, backoff)

        assert db.connect.await_count == 3

    @pytest.mark.asyncio
    async def test_other_errors_propagate_immediately(self):
        db = AsyncMock(spec=Database)
        db.connect.side_effect = asyncpg.InvalidPasswordError("bad password")

        with pytest.raises(asyncpg.InvalidPasswordError):
            await connect_with_retry(db, ExponentialBackoff(max_attempts=5))

        assert db.connect.await_count == 1


class TestCollectorService:
    @pytest.mark.asyncio
    async def test_setup_fails_fast_on_missing_interval(self, mock_metrics):
        db = AsyncMock(spec=Database)
        db.fetchval.return_value = None
        service = CollectorService(database=db, metrics=mock_metrics)

        with pytest.raises(ConfigurationError, match="polling.status"):
            await service.setup()

        assert not service.is_running
        assert service.slots is None

    @pytest.mark.asyncio
    async def test_setup_builds_one_slot_per_poller(self, mock_metrics):
        db = AsyncMock(spec=Database)
        db.fetchval.return_value = "120"
        service = CollectorService(database=db, metrics=mock_metrics)

        slots = await service.setup()
        try:
            assert set(slots) == set(PollerName)
            assert all(s.seconds == 120 for s in slots.values())
            # Idempotent
            assert await service.setup() is slots
        finally:
            await service._cleanup()

        # Borrowed pool is not closed
        db.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_health_check_before_connect(self, mock_metrics):
        db = AsyncMock(spec=Database)
        db.is_connected = False
        service = CollectorService(database=db, metrics=mock_metrics)

        health = await service.health_check()

        assert health == {"running": False, "database": False, "intervals": {}}
