"""
Exponential backoff for startup retries.

The collector retries its first database connection with growing delays
so it can start before PostgreSQL is accepting connections.
"""

import random


class ExponentialBackoff:
    """
    Exponential backoff with jitter.

    Delay for attempt n is min(base * multiplier^n, max_delay), then
    perturbed by up to +/- jitter_range of itself. ``exhausted`` turns true
    once ``max_attempts`` delays have been handed out.

    Usage:
        backoff = ExponentialBackoff(base_delay=2.0, max_delay=120.0, max_attempts=10)
        while True:
            try:
                await db.connect()
                break
            except OSError:
                if backoff.exhausted:
                    raise
                await asyncio.sleep(backoff.next_delay())
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter_range: float = 0.5,
        max_attempts: int | None = None,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter_range = jitter_range
        self.max_attempts = max_attempts
        self._attempt = 0

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def exhausted(self) -> bool:
        return self.max_attempts is not None and self._attempt >= self.max_attempts

    def next_delay(self) -> float:
        """Return the next delay and count the attempt."""
        delay = min(self.base_delay * (self.multiplier ** self._attempt), self.max_delay)
        delay += delay * random.uniform(-self.jitter_range, self.jitter_range)
        self._attempt += 1
        return max(0.0, delay)

    def reset(self) -> None:
        self._attempt = 0
