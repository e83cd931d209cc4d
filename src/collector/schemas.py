"""Upstream wire models.

Statuspage v2 responses are parsed with pydantic so a schema drift
surfaces as a ``MalformedResponseError`` instead of a half-read snapshot.
Unknown fields are ignored.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class _Upstream(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PageInfo(_Upstream):
    updated_at: datetime


class StatusInfo(_Upstream):
    # none | minor | major | critical
    indicator: str
    description: str


class Component(_Upstream):
    id: str
    name: str
    # operational | degraded_performance | partial_outage | major_outage
    status: str


class SummaryResponse(_Upstream):
    """Response from /summary.json"""

    page: PageInfo
    status: StatusInfo
    components: list[Component] = []


class IncidentUpdate(_Upstream):
    id: str
    status: str
    body: str
    created_at: datetime


class Incident(_Upstream):
    id: str
    name: str
    # investigating | identified | monitoring | resolved
    status: str
    impact: str
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None
    incident_updates: list[IncidentUpdate] = []


class UnresolvedIncidentsResponse(_Upstream):
    """Response from /incidents/unresolved.json"""

    incidents: list[Incident]


class Maintenance(_Upstream):
    id: str
    name: str
    # scheduled | in_progress | completed
    status: str
    scheduled_for: datetime
    scheduled_until: datetime
    created_at: datetime
    updated_at: datetime


class MaintenancesResponse(_Upstream):
    """Response from /scheduled-maintenances/{upcoming,active}.json"""

    scheduled_maintenances: list[Maintenance]


@dataclass(frozen=True)
class MetricDefinition:
    """One CloudFront metric endpoint."""

    endpoint: str
    name: str
    unit: str


CLOUDFRONT_METRICS: tuple[MetricDefinition, ...] = (
    MetricDefinition("/apilatency.json", "api_latency", "ms"),
    MetricDefinition("/visits.json", "visits", "count"),
    MetricDefinition("/apirequests.json", "api_requests", "count"),
    MetricDefinition("/apierrors.json", "api_errors", "count"),
    MetricDefinition("/extauth_steam.json", "extauth_steam", "ms"),
    MetricDefinition("/extauth_oculus.json", "extauth_oculus", "ms"),
    MetricDefinition("/extauth_steam_count.json", "extauth_steam_count", "count"),
    MetricDefinition("/extauth_oculus_count.json", "extauth_oculus_count", "count"),
)
