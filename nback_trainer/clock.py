from __future__ import annotations

import math
import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Session logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class RoundTimer:
    """Repeating timer that reports how many round boundaries have been crossed.

    Each boundary is reported exactly once across successive polls. The timer
    never looks at a clock itself; callers pass in the current time.
    """

    def __init__(self, *, interval_s: float, started_at_s: float = 0.0) -> None:
        if interval_s <= 0.0:
            raise ValueError("interval_s must be > 0")
        self._interval_s = float(interval_s)
        self._started_at_s = float(started_at_s)
        self._fired = 0

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def fired(self) -> int:
        return self._fired

    def reset(self, now: float) -> None:
        self._started_at_s = float(now)
        self._fired = 0

    def poll(self, now: float) -> int:
        elapsed = float(now) - self._started_at_s
        if elapsed <= 0.0:
            return 0
        # Small epsilon so that t == k * interval counts as a boundary despite float drift.
        due = int(math.floor(elapsed / self._interval_s + 1e-9))
        crossed = max(0, due - self._fired)
        self._fired += crossed
        return crossed

    def progress(self, now: float) -> float:
        elapsed = float(now) - self._started_at_s
        if elapsed <= 0.0:
            return 0.0
        into_round = elapsed - (self._fired * self._interval_s)
        return max(0.0, min(1.0, into_round / self._interval_s))
