"""
Runtime reconfiguration.

Changes poller intervals and the alert threshold/window without a
restart. An interval change is a two-step commit: publish to the poller's
live slot first, then persist. The steps are not transactional; a crash
in between keeps the new value for this process and reverts to the old
one on restart.

Slots are only available when this service runs in the same process as
the poll supervisor. Without them changes are persisted only.
"""

from dataclasses import dataclass, field

import asyncpg
import structlog

from src.alerts.config import validate_threshold, validate_window
from src.runtime_config import keys
from src.runtime_config.repository import ConfigRepository
from src.scheduler.config import DEFAULT_INTERVAL, PollerName, validate_interval
from src.scheduler.slots import IntervalSlot

logger = structlog.get_logger(__name__)


@dataclass
class ConfigUpdateResult:
    """Outcome of one change.

    ``invalid`` marks rejected input, as opposed to a storage failure.
    """

    ok: bool
    message: str
    live: bool = False
    invalid: bool = False


@dataclass
class ConfigSnapshot:
    """Current runtime values as stored. Unparsable values read as None."""

    intervals: dict[str, int | None] = field(default_factory=dict)
    report_threshold: int | None = None
    report_interval: int | None = None
    live: bool = False


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class RuntimeConfigService:
    """Validated writes to runtime configuration."""

    def __init__(
        self,
        config_repo: ConfigRepository,
        slots: dict[PollerName, IntervalSlot] | None = None,
    ) -> None:
        self._repo = config_repo
        self._slots = slots

    @property
    def is_live(self) -> bool:
        return self._slots is not None

    async def set_poller_interval(self, name: str | PollerName, seconds: int) -> ConfigUpdateResult:
        try:
            poller = name if isinstance(name, PollerName) else PollerName.parse(name)
            validate_interval(seconds)
        except ValueError as e:
            return ConfigUpdateResult(ok=False, message=str(e), invalid=True)

        live = self._push(poller, seconds)
        try:
            await self._repo.set(poller.config_key, str(seconds))
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(
                "Failed to persist polling interval",
                poller=poller.value,
                seconds=seconds,
                applied_live=live,
                error=str(e),
            )
            return ConfigUpdateResult(
                ok=False,
                message=f"Failed to save {poller.value} interval: {e}",
                live=live,
            )

        logger.info("Updated polling interval", poller=poller.value, seconds=seconds, live=live)
        return ConfigUpdateResult(
            ok=True,
            message=self._applied(f"{poller.value} polling interval set to {seconds}s", live),
            live=live,
        )

    async def reset_all_intervals(self) -> ConfigUpdateResult:
        live = False
        try:
            for poller in PollerName:
                live = self._push(poller, DEFAULT_INTERVAL)
                await self._repo.set(poller.config_key, str(DEFAULT_INTERVAL))
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("Failed to persist interval reset", error=str(e))
            return ConfigUpdateResult(ok=False, message=f"Failed to reset intervals: {e}", live=live)

        logger.info("Reset all polling intervals to default", seconds=DEFAULT_INTERVAL)
        return ConfigUpdateResult(
            ok=True,
            message=self._applied(f"All polling intervals reset to {DEFAULT_INTERVAL}s", live),
            live=live,
        )

    async def set_alert_threshold(self, value: int) -> ConfigUpdateResult:
        try:
            validate_threshold(value)
        except ValueError as e:
            return ConfigUpdateResult(ok=False, message=str(e), invalid=True)
        return await self._persist(keys.REPORT_THRESHOLD, value, f"Alert threshold set to {value}")

    async def set_alert_window(self, minutes: int) -> ConfigUpdateResult:
        try:
            validate_window(minutes)
        except ValueError as e:
            return ConfigUpdateResult(ok=False, message=str(e), invalid=True)
        return await self._persist(keys.REPORT_INTERVAL, minutes, f"Alert window set to {minutes} minutes")

    async def snapshot(self) -> ConfigSnapshot:
        wanted = [p.config_key for p in PollerName] + [keys.REPORT_THRESHOLD, keys.REPORT_INTERVAL]
        stored = await self._repo.get_many(wanted)
        intervals = {p.value: _to_int(stored.get(p.config_key)) for p in PollerName}
        if self._slots is not None:
            # Live values win; they may be ahead of storage
            for poller, slot in self._slots.items():
                intervals[poller.value] = slot.seconds
        return ConfigSnapshot(
            intervals=intervals,
            report_threshold=_to_int(stored.get(keys.REPORT_THRESHOLD)),
            report_interval=_to_int(stored.get(keys.REPORT_INTERVAL)),
            live=self.is_live,
        )

    def _push(self, poller: PollerName, seconds: int) -> bool:
        if self._slots is None or poller not in self._slots:
            return False
        self._slots[poller].set(seconds)
        return True

    async def _persist(self, key: str, value: int, message: str) -> ConfigUpdateResult:
        try:
            await self._repo.set(key, str(value))
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("Failed to persist config value", key=key, value=value, error=str(e))
            return ConfigUpdateResult(ok=False, message=f"Failed to save {key}: {e}")
        logger.info("Updated config value", key=key, value=value)
        # Read on every evaluation, so always effective immediately
        return ConfigUpdateResult(ok=True, message=message, live=True)

    @staticmethod
    def _applied(message: str, live: bool) -> str:
        if live:
            return message
        return f"{message} (saved; takes effect when the collector restarts)"
