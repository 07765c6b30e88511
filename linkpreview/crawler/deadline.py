"""Explicit deadline values threaded through every network call."""

from __future__ import annotations

import time
from typing import Callable, Optional

Clock = Callable[[], float]


class Deadline:
    """A point in monotonic time after which work must stop.

    Deadlines nest: ``child(seconds)`` returns a deadline that expires at
    whichever comes first, the parent's expiry or ``seconds`` from now.
    """

    def __init__(self, expires_at: float, clock: Clock = time.monotonic):
        self.expires_at = expires_at
        self._clock = clock

    @classmethod
    def after(cls, seconds: float, clock: Clock = time.monotonic) -> "Deadline":
        return cls(clock() + max(0.0, seconds), clock)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    def child(self, seconds: Optional[float]) -> "Deadline":
        if seconds is None:
            return Deadline(self.expires_at, self._clock)
        return Deadline(min(self.expires_at, self._clock() + max(0.0, seconds)), self._clock)

    def timeout(self, cap: Optional[float] = None) -> float:
        """Seconds to hand to a blocking call, optionally capped."""
        remaining = self.remaining()
        if cap is not None:
            remaining = min(remaining, cap)
        return remaining

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.2f}s)"
