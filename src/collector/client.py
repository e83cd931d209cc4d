"""
Typed client for the upstream status page and metrics feed.

Wraps HTTPClient with one method per endpoint. Every method either returns
a fully parsed response or raises a FetchError subclass.
"""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from src.collector.config import CollectorConfig
from src.collector.http_client import HTTPClient, MalformedResponseError
from src.collector.schemas import (
    Incident,
    Maintenance,
    MaintenancesResponse,
    MetricDefinition,
    SummaryResponse,
    UnresolvedIncidentsResponse,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class StatusPageClient:
    """Fetches Statuspage v2 resources and CloudFront metric series."""

    def __init__(self, http: HTTPClient, config: CollectorConfig | None = None) -> None:
        self._http = http
        self._config = config or CollectorConfig()

    def status_url(self, endpoint: str) -> str:
        return f"{self._config.status_api_base.rstrip('/')}{endpoint}"

    def metrics_url(self, endpoint: str) -> str:
        return f"{self._config.metrics_api_base.rstrip('/')}{endpoint}"

    async def fetch_summary(self) -> SummaryResponse:
        url = self.status_url("/summary.json")
        return _parse(SummaryResponse, url, await self._http.get_json(url))

    async def fetch_unresolved_incidents(self) -> list[Incident]:
        url = self.status_url("/incidents/unresolved.json")
        data = await self._http.get_json(url)
        return _parse(UnresolvedIncidentsResponse, url, data).incidents

    async def fetch_upcoming_maintenances(self) -> list[Maintenance]:
        url = self.status_url("/scheduled-maintenances/upcoming.json")
        data = await self._http.get_json(url)
        return _parse(MaintenancesResponse, url, data).scheduled_maintenances

    async def fetch_active_maintenances(self) -> list[Maintenance]:
        url = self.status_url("/scheduled-maintenances/active.json")
        data = await self._http.get_json(url)
        return _parse(MaintenancesResponse, url, data).scheduled_maintenances

    async def fetch_metric(self, metric: MetricDefinition) -> list[Any]:
        """Fetch one metric series as raw ``[timestamp, value]`` pairs.

        Only the outer shape is checked here; individual points are
        validated by the metrics reconciler so one bad point does not
        discard the whole series.
        """
        url = self.metrics_url(metric.endpoint)
        data = await self._http.get_json(url)
        if not isinstance(data, list):
            raise MalformedResponseError(url, f"expected a list, got {type(data).__name__}")
        return data


def _parse(model: type[ModelT], url: str, data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(url, f"{e.error_count()} validation error(s)") from e
