"""Poll supervisor with runtime-adjustable intervals.

Components:
- PollerName: The four independently scheduled pollers
- IntervalSlot: Single-slot mailbox with a poller's live interval
- load_interval_slots: Fail-fast startup load of intervals from config
- PollerDefinition / PollSupervisor: Concurrent scheduling loops
"""

from src.scheduler.config import (
    DEFAULT_INTERVAL,
    MAX_INTERVAL,
    MIN_INTERVAL,
    PollerName,
    validate_interval,
)
from src.scheduler.slots import IntervalSlot, load_interval_slots
from src.scheduler.supervisor import PollerDefinition, PollSupervisor, next_deadline

__all__ = [
    "DEFAULT_INTERVAL",
    "IntervalSlot",
    "MAX_INTERVAL",
    "MIN_INTERVAL",
    "PollSupervisor",
    "PollerDefinition",
    "PollerName",
    "load_interval_slots",
    "next_deadline",
    "validate_interval",
]
