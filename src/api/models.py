"""
Request and response models for the claims and admin API.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ComponentHealth(BaseModel):
    """Health of a single dependency."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency in milliseconds")
    details: dict = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy or unhealthy",
    )
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-dependency health",
    )
    live_config: bool = Field(
        default=False,
        description="Whether interval changes reach a running collector",
    )
    version: str = Field(default="0.1.0")


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type",
    )


# Claim models


class ClaimRequest(BaseModel):
    """A user report that something is broken."""

    actor_id: str = Field(..., min_length=1, max_length=64, description="Reporting user")
    category: str = Field(
        ...,
        description="One of: login, instance, api, auth, download, other",
    )
    scope_id: str | None = Field(
        default=None,
        max_length=64,
        description="Guild the report was made in; omit for direct reports",
    )
    content: str | None = Field(default=None, description="Optional free-text detail")


class ClaimAcceptedResponse(BaseModel):
    """Response for an accepted claim."""

    claim_id: int
    category: str
    created_at: datetime
    similar_count: int = Field(
        default=0,
        description="Other users who reported the same category in the alert window",
    )
    alert_triggered: bool = False


class ClaimRejectedResponse(BaseModel):
    """Response body for a claim rejected by the cooldown."""

    detail: str
    error_type: str = "cooldown"
    retry_after: datetime


# Admin config models


class ConfigResponse(BaseModel):
    """Current runtime configuration."""

    intervals: dict[str, int | None] = Field(
        ...,
        description="Polling interval in seconds per poller",
    )
    report_threshold: int | None = None
    report_interval: int | None = Field(
        default=None,
        description="Alert window in minutes",
    )
    live: bool = Field(
        default=False,
        description="Whether interval changes apply to a running collector",
    )


class IntervalUpdateRequest(BaseModel):
    seconds: int = Field(..., description="New polling interval (60-3600)")


class ThresholdUpdateRequest(BaseModel):
    value: int = Field(..., description="Distinct reporters needed to alert (1-1000)")


class WindowUpdateRequest(BaseModel):
    minutes: int = Field(..., description="Alert window in minutes (1-1440)")


class ConfigUpdateResponse(BaseModel):
    """Outcome of a configuration change."""

    ok: bool
    message: str
    live: bool = False
