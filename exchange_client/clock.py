"""
Exchange Client - Cache Clock.

============================================================
RESPONSIBILITY
============================================================
Time source for cache bookkeeping, in epoch seconds.

- fetched_at stamps and freshness checks both read this clock
- Tests step it with MockClock.advance(seconds)
- Independent from the NonceClock (see nonce.py) and from the
  signing timestamp (see signing.py)

============================================================
"""

from abc import ABC, abstractmethod
import threading
import time


class ClockProtocol(ABC):
    """Source of epoch timestamps for cache freshness."""

    @abstractmethod
    def timestamp(self) -> float:
        """Current time in fractional seconds since epoch."""
        pass


class SystemClock(ClockProtocol):
    """Wall-clock time."""

    def timestamp(self) -> float:
        return time.time()


class MockClock(ClockProtocol):
    """
    Manually stepped clock.

    Starts at a fixed epoch second so refetch intervals can be crossed
    deterministically: fetch at t, advance(30) still cached, advance(31)
    stale.
    """

    def __init__(self, start: float = 1_514_764_800.0):
        """
        Initialize mock clock.

        Args:
            start: Initial epoch seconds (default 2018-01-01T00:00:00Z)
        """
        self._now = start
        self._lock = threading.Lock()

    def timestamp(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        """Step forward (or back, if negative); returns the new time."""
        with self._lock:
            self._now += seconds
            return self._now


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
]
