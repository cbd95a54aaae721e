from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Reaction times are measured against this interface rather than calling
    real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class WallClock(Protocol):
    """Wall-clock source used only to stamp results, never for durations."""

    def epoch_ms(self) -> int:
        """Return milliseconds since the Unix epoch."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class RealWallClock:
    def epoch_ms(self) -> int:
        return int(time.time() * 1000)
