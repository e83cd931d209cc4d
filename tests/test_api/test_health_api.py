"""Tests for the health endpoint."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.dependencies import get_database, set_live_slots
from src.scheduler.config import PollerName
from src.scheduler.slots import IntervalSlot
from src.storage.database import Database


def _mock_db(healthy: bool = True) -> AsyncMock:
    db = AsyncMock(spec=Database)
    db.health_check.return_value = healthy
    return db


def _client(db: AsyncMock) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_database] = lambda: db
    return TestClient(app)


class TestHealth:
    def test_healthy(self):
        with _client(_mock_db()) as c:
            response = c.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["live_config"] is False

    def test_unhealthy_database(self):
        with _client(_mock_db(healthy=False)) as c:
            response = c.get("/health")

        assert response.json()["status"] == "unhealthy"

    def test_reports_live_config(self):
        with _client(_mock_db()) as c:
            set_live_slots({PollerName.STATUS: IntervalSlot(PollerName.STATUS, 60)})
            try:
                response = c.get("/health")
            finally:
                set_live_slots(None)

        assert response.json()["live_config"] is True

    def test_no_api_key_needed(self, monkeypatch):
        from src.config.settings import get_settings

        monkeypatch.setenv("API_KEYS", "secret")
        get_settings.cache_clear()
        try:
            with _client(_mock_db()) as c:
                response = c.get("/health")
        finally:
            get_settings.cache_clear()

        assert response.status_code == 200
