"""Alert dispatch configuration.

Controls dedup bucketing, payload size and the bounds accepted for the
runtime threshold/window values. The threshold and window themselves live
in the ``bot_config`` table so they can change without a restart. All
settings can be overridden via ``ALERTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Bounds for the runtime-configurable values
MIN_THRESHOLD = 1
MAX_THRESHOLD = 1000
MIN_WINDOW_MINUTES = 1
MAX_WINDOW_MINUTES = 1440


class AlertConfig(BaseSettings):
    """Configuration for threshold alert dispatch."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Triggers inside the same wall-clock bucket share one dedup reference
    dedup_bucket_minutes: int = Field(
        default=15,
        ge=1,
        le=60,
        description="Width of the dedup bucket; should divide 60",
    )

    recent_claims_limit: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Recent claim timestamps included in a notification",
    )


def validate_threshold(value: int) -> None:
    """Raises ValueError if the threshold is out of bounds."""
    if not MIN_THRESHOLD <= value <= MAX_THRESHOLD:
        raise ValueError(
            f"Threshold must be between {MIN_THRESHOLD} and {MAX_THRESHOLD}"
        )


def validate_window(minutes: int) -> None:
    """Raises ValueError if the window is out of bounds."""
    if not MIN_WINDOW_MINUTES <= minutes <= MAX_WINDOW_MINUTES:
        raise ValueError(
            f"Window must be between {MIN_WINDOW_MINUTES} and {MAX_WINDOW_MINUTES} minutes"
        )
