"""Clock sources supplying u32 seconds timestamps."""

import time
from typing import Protocol

from .fixed_point import checked_timestamp


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock seconds since the epoch."""

    def now(self) -> int:
        return checked_timestamp(int(time.time()))


class ManualClock:
    """Deterministic clock for tests and simulations. Never goes backwards."""

    def __init__(self, start: int = 1_700_000_000):
        self._now = checked_timestamp(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"Clock cannot move backwards (advance by {seconds})")
        self._now = checked_timestamp(self._now + seconds)
        return self._now

    def set(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError(f"Clock cannot move backwards ({timestamp} < {self._now})")
        self._now = checked_timestamp(timestamp)
        return self._now
