"""Claim submission configuration.

All settings can be overridden via ``CLAIMS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClaimsConfig(BaseSettings):
    """Configuration for the claim submission path."""

    model_config = SettingsConfigDict(
        env_prefix="CLAIMS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Per-actor cooldown: at most one active claim per actor in this window
    cooldown_minutes: int = Field(
        default=5,
        ge=1,
        le=1440,
        description="Minutes an actor must wait between accepted claims",
    )
    max_content_length: int = Field(
        default=500,
        ge=1,
        description="Maximum characters of free-text detail on a claim",
    )
    require_registration: bool = Field(
        default=True,
        description="Reject claims from scopes/actors that are not enabled subscribers",
    )
    # Used for the "N others reported this" count when report_interval is unset
    fallback_window_minutes: int = Field(default=60, ge=1, le=1440)
