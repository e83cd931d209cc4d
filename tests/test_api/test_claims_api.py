"""Tests for the claim submission endpoint."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.alerts.schemas import DispatchSummary
from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import get_claim_service
from src.claims.schemas import Claim, InvalidClaimError, NotRegisteredError
from src.claims.service import ClaimService, SubmissionOutcome

NOW = datetime(2026, 1, 10, 14, 37, 12, tzinfo=timezone.utc)


def _claim(**kwargs) -> Claim:
    return Claim(
        actor_id=kwargs.pop("actor_id", "alice"),
        category=kwargs.pop("category", "login"),
        created_at=kwargs.pop("created_at", NOW),
        id=kwargs.pop("id", 7),
        **kwargs,
    )


@pytest.fixture
def mock_claim_service():
    service = AsyncMock(spec=ClaimService)
    service.submit = AsyncMock(
        return_value=SubmissionOutcome(accepted=True, claim=_claim(), similar_count=2)
    )
    return service


@pytest.fixture
def client(mock_claim_service):
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_claim_service] = lambda: mock_claim_service

    with TestClient(app) as c:
        yield c


class TestSubmitClaim:
    def test_accepted(self, client, mock_claim_service):
        response = client.post(
            "/claims",
            json={"actor_id": "alice", "category": "login", "scope_id": "g1", "content": "502s"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["claim_id"] == 7
        assert data["category"] == "login"
        assert data["similar_count"] == 2
        assert data["alert_triggered"] is False
        mock_claim_service.submit.assert_awaited_once_with(
            "alice", "login", scope_id="g1", content="502s"
        )

    def test_alert_triggered_flag(self, client, mock_claim_service):
        dispatch = DispatchSummary(category="login", evaluated_at=NOW, outcome="triggered")
        mock_claim_service.submit.return_value = SubmissionOutcome(
            accepted=True, claim=_claim(), dispatch=dispatch
        )

        response = client.post("/claims", json={"actor_id": "alice", "category": "login"})

        assert response.json()["alert_triggered"] is True

    def test_cooldown_rejection(self, client, mock_claim_service):
        retry_after = NOW + timedelta(minutes=5)
        mock_claim_service.submit.return_value = SubmissionOutcome(
            accepted=False, claim=_claim(), retry_after=retry_after
        )

        response = client.post("/claims", json={"actor_id": "alice", "category": "api"})

        assert response.status_code == 429
        data = response.json()
        assert data["error_type"] == "cooldown"
        assert datetime.fromisoformat(data["retry_after"].replace("Z", "+00:00")) == retry_after

    def test_invalid_category(self, client, mock_claim_service):
        mock_claim_service.submit.side_effect = InvalidClaimError("category", "Unknown category 'x'")

        response = client.post("/claims", json={"actor_id": "alice", "category": "x"})

        assert response.status_code == 422
        assert "Unknown category" in response.json()["detail"]

    def test_not_registered(self, client, mock_claim_service):
        mock_claim_service.submit.side_effect = NotRegisteredError("guild", "g9")

        response = client.post(
            "/claims", json={"actor_id": "alice", "category": "login", "scope_id": "g9"}
        )

        assert response.status_code == 403
        assert "not registered" in response.json()["detail"]

    def test_missing_actor_is_request_validation_error(self, client, mock_claim_service):
        response = client.post("/claims", json={"category": "login"})

        assert response.status_code == 422
        mock_claim_service.submit.assert_not_awaited()

    def test_response_carries_request_id(self, client):
        response = client.post(
            "/claims",
            json={"actor_id": "alice", "category": "login"},
            headers={"X-Request-ID": "req-123"},
        )

        assert response.headers["X-Request-ID"] == "req-123"
