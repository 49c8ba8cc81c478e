"""Clocks for measuring retry budgets.

Time is read as integer nanoseconds from a monotonic source so that elapsed
budgets never drift with float rounding or wall-clock adjustments.
``SystemClock`` is used in production; ``FakeClock`` only moves when a test
tells it to.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol, runtime_checkable

NANOS_PER_SECOND = 1_000_000_000


def to_nanos(seconds: float) -> int:
    """Convert a duration in seconds to whole nanoseconds."""
    return round(seconds * NANOS_PER_SECOND)


def to_seconds(nanos: int) -> float:
    """Convert nanoseconds to seconds."""
    return nanos / NANOS_PER_SECOND


@runtime_checkable
class Clock(Protocol):
    """Source of monotonic time."""

    def nanos(self) -> int:
        """Current monotonic time in nanoseconds."""
        ...


class SystemClock:
    """Clock backed by ``time.monotonic_ns``."""

    def nanos(self) -> int:
        return time.monotonic_ns()

    def __repr__(self) -> str:
        return "SystemClock()"


class FakeClock:
    """Manually advanced clock for deterministic tests.

    Example:
        >>> clock = FakeClock()
        >>> clock.advance(0.002)
        >>> clock.nanos()
        2000000
    """

    def __init__(self, start_nanos: int = 0):
        self._now = start_nanos
        self._lock = threading.Lock()

    def nanos(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> None:
        """Move time forward by ``seconds``."""
        self.advance_nanos(to_nanos(seconds))

    def advance_nanos(self, nanos: int) -> None:
        if nanos < 0:
            raise ValueError(f"Cannot move a clock backwards ({nanos}ns)")
        with self._lock:
            self._now += nanos

    def __repr__(self) -> str:
        return f"FakeClock(nanos={self._now})"


__all__ = [
    "NANOS_PER_SECOND",
    "Clock",
    "SystemClock",
    "FakeClock",
    "to_nanos",
    "to_seconds",
]
