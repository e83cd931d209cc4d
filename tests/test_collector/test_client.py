"""Tests for the typed status page client."""

import httpx
import pytest
import respx

from src.collector.client import StatusPageClient
from src.collector.config import CollectorConfig
from src.collector.http_client import HTTPClient, MalformedResponseError, RetryConfig
from src.collector.schemas import CLOUDFRONT_METRICS

STATUS_BASE = "https://status.example.com/api/v2"
METRICS_BASE = "https://metrics.example.com"


@pytest.fixture
def config() -> CollectorConfig:
    return CollectorConfig(status_api_base=STATUS_BASE, metrics_api_base=METRICS_BASE)


def _incident_json(**overrides) -> dict:
    data = {
        "id": "inc_1",
        "name": "Login failures",
        "status": "investigating",
        "impact": "major",
        "created_at": "2026-01-10T14:00:00.000Z",
        "updated_at": "2026-01-10T14:05:00.000Z",
        "resolved_at": None,
        "shortlink": "https://stspg.io/x",
        "incident_updates": [
            {
                "id": "upd_1",
                "status": "investigating",
                "body": "We are looking into it.",
                "created_at": "2026-01-10T14:00:00.000Z",
            }
        ],
    }
    data.update(overrides)
    return data


class TestStatusPageClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_summary(self, config):
        respx.get(f"{STATUS_BASE}/summary.json").mock(
            return_value=httpx.Response(
                200,
                json={
                    "page": {"id": "p", "name": "Status", "updated_at": "2026-01-10T14:00:00Z"},
                    "status": {"indicator": "minor", "description": "Partially Degraded Service"},
                    "components": [
                        {"id": "c1", "name": "API", "status": "degraded_performance"},
                    ],
                },
            )
        )

        async with HTTPClient(RetryConfig(max_retries=0)) as http:
            summary = await StatusPageClient(http, config).fetch_summary()

        assert summary.status.indicator == "minor"
        assert summary.components[0].status == "degraded_performance"
        assert summary.page.updated_at.tzinfo is not None

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_unresolved_incidents_parses_updates(self, config):
        respx.get(f"{STATUS_BASE}/incidents/unresolved.json").mock(
            return_value=httpx.Response(200, json={"incidents": [_incident_json()]})
        )

        async with HTTPClient(RetryConfig(max_retries=0)) as http:
            incidents = await StatusPageClient(http, config).fetch_unresolved_incidents()

        assert [i.id for i in incidents] == ["inc_1"]
        assert incidents[0].incident_updates[0].body == "We are looking into it."

    @pytest.mark.asyncio
    @respx.mock
    async def test_schema_drift_is_malformed(self, config):
        respx.get(f"{STATUS_BASE}/incidents/unresolved.json").mock(
            return_value=httpx.Response(200, json={"incidents": [{"id": "inc_1"}]})
        )

        async with HTTPClient(RetryConfig(max_retries=0)) as http:
            with pytest.raises(MalformedResponseError):
                await StatusPageClient(http, config).fetch_unresolved_incidents()

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_maintenance_lists(self, config):
        window = {
            "id": "mnt_1",
            "name": "Database upgrade",
            "status": "scheduled",
            "scheduled_for": "2026-01-11T02:00:00Z",
            "scheduled_until": "2026-01-11T04:00:00Z",
            "created_at": "2026-01-09T00:00:00Z",
            "updated_at": "2026-01-09T00:00:00Z",
        }
        respx.get(f"{STATUS_BASE}/scheduled-maintenances/upcoming.json").mock(
            return_value=httpx.Response(200, json={"scheduled_maintenances": [window]})
        )
        respx.get(f"{STATUS_BASE}/scheduled-maintenances/active.json").mock(
            return_value=httpx.Response(200, json={"scheduled_maintenances": []})
        )

        async with HTTPClient(RetryConfig(max_retries=0)) as http:
            client = StatusPageClient(http, config)
            upcoming = await client.fetch_upcoming_maintenances()
            active = await client.fetch_active_maintenances()

        assert [m.id for m in upcoming] == ["mnt_1"]
        assert active == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_metric_returns_raw_pairs(self, config):
        definition = CLOUDFRONT_METRICS[0]
        respx.get(f"{METRICS_BASE}{definition.endpoint}").mock(
            return_value=httpx.Response(200, json=[[1768053600, 120.5], [1768053660, 118.0]])
        )

        async with HTTPClient(RetryConfig(max_retries=0)) as http:
            points = await StatusPageClient(http, config).fetch_metric(definition)

        assert points == [[1768053600, 120.5], [1768053660, 118.0]]

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_metric_rejects_non_list(self, config):
        definition = CLOUDFRONT_METRICS[1]
        respx.get(f"{METRICS_BASE}{definition.endpoint}").mock(
            return_value=httpx.Response(200, json={"error": "gone"})
        )

        async with HTTPClient(RetryConfig(max_retries=0)) as http:
            with pytest.raises(MalformedResponseError):
                await StatusPageClient(http, config).fetch_metric(definition)

    def test_cloudfront_metrics_are_unique(self):
        names = [m.name for m in CLOUDFRONT_METRICS]
        assert len(names) == 8
        assert len(set(names)) == 8
