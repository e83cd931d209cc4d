"""Schema definitions for mirrored upstream entities.

Each dataclass maps 1:1 to a table created by ``src.storage.schema``.
Incidents and maintenance windows are mutable with a terminal state;
everything else is append-only history keyed by its natural key.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

IncidentStatus = Literal["investigating", "identified", "monitoring", "resolved"]

INCIDENT_RESOLVED = "resolved"

MaintenanceStatus = Literal["scheduled", "in_progress", "completed"]

MAINTENANCE_SCHEDULED = "scheduled"
MAINTENANCE_IN_PROGRESS = "in_progress"
MAINTENANCE_COMPLETED = "completed"

# Forward-only ordering of maintenance states
MAINTENANCE_STATUS_RANK: dict[str, int] = {
    MAINTENANCE_SCHEDULED: 0,
    MAINTENANCE_IN_PROGRESS: 1,
    MAINTENANCE_COMPLETED: 2,
}


def maintenance_rank(status: str) -> int:
    """Position of a maintenance status in the forward order.

    Unknown labels rank with ``scheduled`` so they never displace a
    known later state.
    """
    return MAINTENANCE_STATUS_RANK.get(status, 0)


@dataclass
class TrackedIncident:
    """A mirrored upstream incident.

    Attributes:
        id: Upstream incident id (stable).
        title: Incident name.
        impact: none | minor | major | critical.
        status: investigating | identified | monitoring | resolved.
        started_at: Upstream creation time.
        resolved_at: Set iff status is resolved.
        created_at: Row creation time.
        updated_at: Last meaningful change.
    """

    id: str
    title: str
    impact: str
    status: str
    started_at: datetime
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status == INCIDENT_RESOLVED


@dataclass
class IncidentNote:
    """An immutable update posted on an incident."""

    id: str
    incident_id: str
    body: str
    status: str
    published_at: datetime


@dataclass
class MaintenanceWindow:
    """A mirrored scheduled maintenance."""

    id: str
    title: str
    status: str
    scheduled_for: datetime
    scheduled_until: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def is_completed(self) -> bool:
        return self.status == MAINTENANCE_COMPLETED


@dataclass
class MetricSample:
    """One point of a metric series. Unique on (metric_name, timestamp)."""

    metric_name: str
    timestamp: datetime
    value: float
    unit: str
    interval_sec: int = 60


@dataclass
class StatusSnapshot:
    """Overall page status at one upstream timestamp."""

    indicator: str
    description: str
    source_timestamp: datetime


@dataclass
class ComponentStatusSample:
    """One component's status at one upstream timestamp."""

    component_id: str
    name: str
    status: str
    source_timestamp: datetime


@dataclass
class ReconcileOutcome:
    """Write counts from one reconciliation pass.

    ``skipped`` counts inputs deliberately not applied (a reopened
    resolved incident, an unparseable metric timestamp, a failed metric
    endpoint), not rows that already existed.
    """

    kind: str
    inserted: int = 0
    updated: int = 0
    completed: int = 0
    skipped: int = 0

    @property
    def writes(self) -> int:
        return self.inserted + self.updated + self.completed

    def __str__(self) -> str:
        return (
            f"{self.kind}: inserted={self.inserted} updated={self.updated} "
            f"completed={self.completed} skipped={self.skipped}"
        )
