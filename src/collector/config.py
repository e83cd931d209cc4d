"""Upstream collector configuration.

All settings can be overridden via ``COLLECTOR_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CollectorConfig(BaseSettings):
    """Configuration for upstream status and metrics fetches."""

    model_config = SettingsConfigDict(
        env_prefix="COLLECTOR_",
        case_sensitive=False,
        extra="ignore",
    )

    status_api_base: str = Field(
        default="https://status.vrchat.com/api/v2",
        description="Base URL of the Statuspage v2 API",
    )
    metrics_api_base: str = Field(
        default="https://d31qqo63tn8lj0.cloudfront.net",
        description="Base URL of the CloudFront metrics feed",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-request timeout; a timed-out fetch fails the cycle",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=5,
        description="Retries for transient upstream errors within one cycle",
    )
    max_backoff_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for a single retry backoff",
    )

    # Sampling interval recorded with each metric row
    metric_interval_seconds: int = Field(default=60, ge=1)
