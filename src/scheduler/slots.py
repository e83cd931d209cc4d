"""
Live interval cells for the pollers.

Each poller owns one ``IntervalSlot``: a single-slot mailbox holding its
current interval. The runtime config service is the single writer; the
poller loop is the single consumer and selects over "timer elapsed" and
"slot updated", so a new value takes effect without a restart.
"""

import asyncio
import logging

from src.runtime_config.errors import ConfigurationError
from src.runtime_config.repository import ConfigRepository
from src.scheduler.config import PollerName, validate_interval

logger = logging.getLogger(__name__)


class IntervalSlot:
    """Single-slot mailbox for one poller's interval (seconds).

    Only the latest value is kept; intermediate updates that arrive while
    the consumer is busy collapse into one wake-up.
    """

    def __init__(self, name: PollerName, seconds: int) -> None:
        self.name = name
        self._seconds = seconds
        self._changed = asyncio.Event()

    @property
    def seconds(self) -> int:
        return self._seconds

    def set(self, seconds: int) -> None:
        """Publish a new interval and wake the consumer."""
        self._seconds = seconds
        self._changed.set()

    async def wait_changed(self) -> int:
        """Block until a new value is published, then return it."""
        await self._changed.wait()
        self._changed.clear()
        return self._seconds

    def __repr__(self) -> str:
        return f"IntervalSlot({self.name.value!r}, seconds={self._seconds})"


async def load_interval_slots(
    config_repo: ConfigRepository,
    pollers: list[PollerName] | None = None,
) -> dict[PollerName, IntervalSlot]:
    """Build one slot per poller from persisted config.

    Fails fast: a missing, unparsable or out-of-range interval raises
    instead of silently falling back to a default.

    Raises:
        ConfigurationError: On the first bad value.
    """
    pollers = pollers if pollers is not None else list(PollerName)
    slots: dict[PollerName, IntervalSlot] = {}

    for poller in pollers:
        seconds = await config_repo.get_int(poller.config_key)
        try:
            validate_interval(seconds)
        except ValueError:
            raise ConfigurationError(poller.config_key, str(seconds)) from None
        slots[poller] = IntervalSlot(poller, seconds)

    logger.info(
        "Loaded polling intervals from database: %s",
        ", ".join(f"{p.value}={s.seconds}s" for p, s in slots.items()),
    )
    return slots
