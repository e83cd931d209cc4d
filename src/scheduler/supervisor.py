"""
Poll supervisor - runs every poller concurrently on its own live interval.

Each poller gets one task. A task waits for either its deadline or a new
interval value, polls on the deadline, and re-anchors its schedule as soon
as a new interval arrives. A failed poll is logged and the loop carries on;
one poller failing persistently never starves the others.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from src.observability.metrics import MetricsCollector, get_metrics
from src.scheduler.config import PollerName
from src.scheduler.slots import IntervalSlot

logger = structlog.get_logger(__name__)

PollFn = Callable[[], Awaitable[Any]]


@dataclass
class PollerDefinition:
    """One poller: its name, its side-effecting poll, and its interval slot."""

    name: PollerName
    poll: PollFn
    slot: IntervalSlot


def next_deadline(previous: float, interval: float, now: float) -> float:
    """Advance a deadline by whole periods until it lies in the future.

    Ticks missed while a slow poll was running are skipped rather than
    replayed, so at most one poll fires per wake.
    """
    deadline = previous + interval
    if deadline <= now:
        missed = int((now - deadline) // interval) + 1
        deadline += missed * interval
    return deadline


class PollSupervisor:
    """
    Runs a set of pollers until stopped.

    Usage:
        supervisor = PollSupervisor([
            PollerDefinition(PollerName.INCIDENT, reconciler.poll, slots[PollerName.INCIDENT]),
            ...
        ])
        await supervisor.run()  # Runs until stop() or cancellation
    """

    def __init__(
        self,
        pollers: list[PollerDefinition],
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            pollers: Poller definitions to run
            metrics: Metrics collector (defaults to the global one)
            clock: Monotonic clock in seconds (defaults to the loop clock)
        """
        names = [p.name for p in pollers]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate poller names: {names}")

        self._pollers = pollers
        self._metrics = metrics
        self._clock = clock
        self._tasks: list[asyncio.Task] = []
        self._running = False
        self._stop_requested = False

    @property
    def pollers(self) -> list[PollerDefinition]:
        return list(self._pollers)

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Run all pollers concurrently until stopped or cancelled."""
        self._running = True
        self._stop_requested = False
        logger.info(
            "Starting poll supervisor",
            pollers=[p.name.value for p in self._pollers],
        )

        self._tasks = [
            asyncio.create_task(self._run_poller(p), name=f"poller:{p.name.value}")
            for p in self._pollers
        ]

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            if self._stop_requested:
                logger.info("Poll supervisor stopped")
                return
            logger.info("Poll supervisor cancelled")
            raise
        finally:
            self._running = False
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

    async def stop(self) -> None:
        """Stop every poller. In-flight polls are cancelled."""
        logger.info("Stopping poll supervisor")
        self._running = False
        self._stop_requested = True
        for task in self._tasks:
            task.cancel()

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    def _get_metrics(self) -> MetricsCollector:
        if self._metrics is None:
            self._metrics = get_metrics()
        return self._metrics

    async def _run_poller(self, poller: PollerDefinition) -> None:
        """Scheduling loop for a single poller."""
        name = poller.name.value
        interval = poller.slot.seconds
        self._get_metrics().set_poll_interval(name, interval)

        # First poll fires immediately
        deadline = self._now()
        last_start = deadline

        while self._running:
            delay = max(0.0, deadline - self._now())
            try:
                interval = await asyncio.wait_for(
                    poller.slot.wait_changed(), timeout=delay
                )
            except asyncio.TimeoutError:
                last_start = self._now()
                await self._poll_once(poller)
                deadline = next_deadline(deadline, interval, self._now())
                continue

            # New interval: re-anchor on the last poll instead of waiting
            # out the old period
            deadline = max(last_start + interval, self._now())
            self._get_metrics().set_poll_interval(name, interval)
            logger.info(
                "Polling interval updated",
                poller=name,
                interval_secs=interval,
            )

    async def _poll_once(self, poller: PollerDefinition) -> None:
        """Invoke one poll, isolating any failure to this cycle."""
        name = poller.name.value
        started = time.monotonic()

        try:
            outcome = await poller.poll()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            latency = time.monotonic() - started
            self._get_metrics().record_poll(name, success=False, latency=latency)
            logger.error(
                "Poll failed",
                poller=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        latency = time.monotonic() - started
        self._get_metrics().record_poll(name, success=True, latency=latency)
        logger.debug(
            "Poll completed successfully",
            poller=name,
            outcome=str(outcome) if outcome is not None else None,
            latency_ms=round(latency * 1000, 1),
        )
