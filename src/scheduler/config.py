"""Poller identities and interval bounds."""

import enum

from src.runtime_config import keys

# Minimum polling interval (1 minute)
MIN_INTERVAL = 60

# Maximum polling interval (1 hour)
MAX_INTERVAL = 3600

# Interval applied by reset
DEFAULT_INTERVAL = 60


class PollerName(str, enum.Enum):
    """The independently scheduled pollers."""

    STATUS = "status"
    INCIDENT = "incident"
    MAINTENANCE = "maintenance"
    METRICS = "metrics"

    @property
    def config_key(self) -> str:
        return _CONFIG_KEYS[self]

    @classmethod
    def parse(cls, value: str) -> "PollerName":
        """Case-insensitive lookup.

        Raises:
            ValueError: For an unknown poller name.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(
                f"Unknown poller {value!r}. Must be one of: {valid}"
            ) from None


_CONFIG_KEYS: dict[PollerName, str] = {
    PollerName.STATUS: keys.POLLING_STATUS,
    PollerName.INCIDENT: keys.POLLING_INCIDENT,
    PollerName.MAINTENANCE: keys.POLLING_MAINTENANCE,
    PollerName.METRICS: keys.POLLING_METRICS,
}


def validate_interval(seconds: int) -> None:
    """Check an interval against [MIN_INTERVAL, MAX_INTERVAL].

    Raises:
        ValueError: With a message suitable for an operator.
    """
    if seconds < MIN_INTERVAL:
        raise ValueError(f"Interval must be at least {MIN_INTERVAL} seconds")
    if seconds > MAX_INTERVAL:
        raise ValueError(f"Interval must be at most {MAX_INTERVAL} seconds")
