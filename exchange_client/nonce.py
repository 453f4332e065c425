"""
Exchange Client - Nonce Clock.

============================================================
RESPONSIBILITY
============================================================
Process-wide, second-granularity nonce generator.

GUARANTEES:
- Values never decrease across calls, whatever the calling thread
- No value is returned twice: a caller landing in the same second
  as the previous nonce blocks until the next wall-clock second
- A wall clock behind the previous nonce (e.g. an NTP step back)
  yields previous + 1 at once, without waiting

The blocking sleep (up to ~1 second) is the only intentional blocking
in the client. Request signing does NOT use this clock.

============================================================
"""

import logging
import math
import threading
import time
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class NonceClock:
    """
    Monotonic second-granularity nonce generator.

    Reads and writes of the previous nonce are serialized through a single
    lock, so the sleep-and-recompute step happens inside the critical section.
    """

    def __init__(
        self,
        time_source: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize nonce clock.

        Args:
            time_source: Returns fractional seconds since epoch
            sleep: Blocking sleep function
        """
        self._time_source = time_source
        self._sleep = sleep
        self._previous_nonce = 0
        self._lock = threading.Lock()

    @property
    def previous_nonce(self) -> int:
        """Last value handed out (0 before the first call)."""
        with self._lock:
            return self._previous_nonce

    def next(self) -> int:
        """
        Return the next nonce in whole seconds since epoch.

        Returns:
            Integer seconds, strictly greater than any earlier return value
        """
        with self._lock:
            now = self._time_source()
            ts = int(math.floor(now))

            if ts == self._previous_nonce:
                delay = 1.0 - (now - ts)
                logger.debug(f"Nonce {ts} already issued, waiting {delay:.3f}s")
                self._sleep(delay)
                ts = int(math.floor(self._time_source()))

            if ts <= self._previous_nonce:
                # Wall clock stepped back: hand out the next value without waiting
                logger.debug(f"Wall clock {ts} behind nonce {self._previous_nonce}")
                ts = self._previous_nonce + 1

            self._previous_nonce = ts
            return ts


# ============================================================
# PROCESS-WIDE INSTANCE
# ============================================================

_default_clock: Optional[NonceClock] = None
_default_lock = threading.Lock()


def get_nonce_clock() -> NonceClock:
    """Get the process-wide nonce clock, creating it on first use."""
    global _default_clock
    with _default_lock:
        if _default_clock is None:
            _default_clock = NonceClock()
        return _default_clock


__all__ = [
    "NonceClock",
    "get_nonce_clock",
]
