"""Tests for the runtime configuration endpoints."""

from unittest.mock import AsyncMock

import asyncpg
import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import get_runtime_config_service
from src.runtime_config import keys
from src.runtime_config.service import RuntimeConfigService
from src.scheduler.config import PollerName
from src.scheduler.slots import IntervalSlot
from tests.fakes import FakeConfigRepository


@pytest.fixture
def repo(default_config_values) -> FakeConfigRepository:
    return FakeConfigRepository(default_config_values)


@pytest.fixture
def slots() -> dict[PollerName, IntervalSlot]:
    return {p: IntervalSlot(p, 60) for p in PollerName}


def _client(service: RuntimeConfigService):
    app = create_app()
    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_runtime_config_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def live_client(repo, slots):
    with _client(RuntimeConfigService(repo, slots=slots)) as c:
        yield c


@pytest.fixture
def offline_client(repo):
    with _client(RuntimeConfigService(repo)) as c:
        yield c


class TestGetConfig:
    def test_returns_snapshot(self, live_client, slots):
        slots[PollerName.METRICS].set(600)

        response = live_client.get("/admin/config")

        assert response.status_code == 200
        data = response.json()
        assert data["intervals"]["metrics"] == 600
        assert data["intervals"]["status"] == 60
        assert data["report_threshold"] == 1
        assert data["report_interval"] == 60
        assert data["live"] is True

    def test_store_unavailable(self):
        service = AsyncMock(spec=RuntimeConfigService)
        service.snapshot.side_effect = asyncpg.InterfaceError("pool is closed")

        with _client(service) as c:
            response = c.get("/admin/config")

        assert response.status_code == 503


class TestPollerIntervals:
    def test_live_update(self, live_client, repo, slots):
        response = live_client.put("/admin/config/pollers/incident", json={"seconds": 300})

        assert response.status_code == 200
        assert response.json()["live"] is True
        assert slots[PollerName.INCIDENT].seconds == 300
        assert repo.values[keys.POLLING_INCIDENT] == "300"

    def test_offline_update_is_saved_only(self, offline_client, repo):
        response = offline_client.put("/admin/config/pollers/status", json={"seconds": 120})

        assert response.status_code == 200
        data = response.json()
        assert data["live"] is False
        assert "restarts" in data["message"]
        assert repo.values[keys.POLLING_STATUS] == "120"

    def test_out_of_range(self, live_client, slots):
        response = live_client.put("/admin/config/pollers/status", json={"seconds": 30})

        assert response.status_code == 422
        assert "at least 60" in response.json()["detail"]
        assert slots[PollerName.STATUS].seconds == 60

    def test_unknown_poller(self, live_client):
        response = live_client.put("/admin/config/pollers/weather", json={"seconds": 120})

        assert response.status_code == 422

    def test_storage_failure(self, live_client, repo):
        repo.fail_set = True

        response = live_client.put("/admin/config/pollers/status", json={"seconds": 120})

        assert response.status_code == 503

    def test_reset(self, live_client, repo, slots):
        slots[PollerName.STATUS].set(900)

        response = live_client.post("/admin/config/pollers/reset")

        assert response.status_code == 200
        assert all(s.seconds == 60 for s in slots.values())


class TestAlertSettings:
    def test_set_threshold(self, live_client, repo):
        response = live_client.put("/admin/config/alerts/threshold", json={"value": 4})

        assert response.status_code == 200
        assert repo.values[keys.REPORT_THRESHOLD] == "4"

    def test_threshold_out_of_range(self, live_client):
        response = live_client.put("/admin/config/alerts/threshold", json={"value": 5000})
        assert response.status_code == 422

    def test_set_window(self, live_client, repo):
        response = live_client.put("/admin/config/alerts/window", json={"minutes": 30})

        assert response.status_code == 200
        assert repo.values[keys.REPORT_INTERVAL] == "30"
