"""
Exchange Client - Fan-out/Join Primitive.

============================================================
PURPOSE
============================================================
Tracks completion of a fixed set of concurrent sub-fetches and fires
a single continuation once every branch has completed.

GUARANTEES:
- The continuation fires exactly once, after the last branch
- Marking a branch, recounting, and deciding to fire are one atomic
  step under a lock, so simultaneous completions from different
  threads cannot fire it twice or not at all
- A branch completing twice counts once
- An empty branch set fires immediately

============================================================
"""

import asyncio
import logging
import threading
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, Tuple, TypeVar


logger = logging.getLogger(__name__)


K = TypeVar("K", bound=Hashable)


class FanOutJoin(Generic[K]):
    """Exactly-once join over a set of branch keys."""

    def __init__(
        self,
        keys: Iterable[K],
        on_complete: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize join.

        Args:
            keys: One key per branch (duplicates collapse)
            on_complete: Continuation fired once all branches are done
        """
        self._done: Dict[K, bool] = {key: False for key in keys}
        self._remaining = len(self._done)
        self._order: List[K] = []
        self._fire_count = 0
        self._on_complete = on_complete
        self._lock = threading.Lock()

        if self._remaining == 0:
            with self._lock:
                self._fire_count = 1
            self._fire()

    @property
    def total(self) -> int:
        return len(self._done)

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return self._remaining == 0

    @property
    def fire_count(self) -> int:
        """Number of times the continuation fired (0 or 1)."""
        with self._lock:
            return self._fire_count

    @property
    def completion_order(self) -> List[K]:
        with self._lock:
            return list(self._order)

    def mark_done(self, key: K) -> bool:
        """
        Record completion of one branch.

        Safe to call from any thread.

        Args:
            key: Branch key

        Returns:
            True if this call completed the join and fired the continuation

        Raises:
            KeyError: If key is not one of the branches
        """
        with self._lock:
            if key not in self._done:
                raise KeyError(f"Unknown fan-out branch: {key!r}")
            if self._done[key]:
                logger.debug(f"Branch {key!r} completed more than once")
                return False

            self._done[key] = True
            self._order.append(key)
            self._remaining -= 1

            fire = self._remaining == 0 and self._fire_count == 0
            if fire:
                self._fire_count = 1

        if fire:
            self._fire()
        return fire

    def _fire(self) -> None:
        if self._on_complete is not None:
            self._on_complete()


def async_join(keys: Iterable[K]) -> Tuple[FanOutJoin[K], asyncio.Future]:
    """
    Create a join whose completion resolves a future on the running loop.

    Branches may mark completion from any thread; the future is resolved
    on the loop thread.

    Returns:
        (join, future)
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _resolve() -> None:
        if not future.done():
            future.set_result(None)

    def _on_complete() -> None:
        loop.call_soon_threadsafe(_resolve)

    return FanOutJoin(keys, on_complete=_on_complete), future


__all__ = [
    "FanOutJoin",
    "async_join",
]
