"""
Exchange Client - Response Cache.

============================================================
PURPOSE
============================================================
Time-boxed, thread-safe storage for decoded responses.

- One ResponseCache per store field (products, tickers, accounts)
- Entries keyed by an optional sub-key (e.g. a CurrencyPair)
- Every read-modify-write happens under the cache's own lock
- An entry is fresh iff now - fetched_at < refetch_interval

Entries are replaced wholesale on each successful fetch and are
never written on failure. Nothing is persisted across restarts.

============================================================
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Generic, Hashable, Iterator, Optional, Tuple, TypeVar

from .endpoints import EndpointDescriptor


logger = logging.getLogger(__name__)


T = TypeVar("T")

# Key used by single-entry caches (products list, accounts list)
SINGLE = None


# ============================================================
# CACHED RESPONSE
# ============================================================

@dataclass(frozen=True)
class CachedResponse(Generic[T]):
    """
    Last successful response for one cache key.

    Invariant: payload is present iff fetched_at is present.
    """

    fetched_at: Optional[float] = None
    payload: Optional[T] = None
    status_code: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if (self.fetched_at is None) != (self.payload is None):
            raise ValueError("payload must be present iff fetched_at is present")

    @property
    def is_empty(self) -> bool:
        return self.fetched_at is None

    def is_fresh(self, descriptor: EndpointDescriptor, now: float) -> bool:
        """Freshness according to the descriptor's refetch interval."""
        return descriptor.check_interval(self.fetched_at, now)

    def age_seconds(self, now: float) -> Optional[float]:
        if self.fetched_at is None:
            return None
        return now - self.fetched_at


EMPTY: CachedResponse = CachedResponse()


# ============================================================
# RESPONSE CACHE
# ============================================================

class ResponseCache(Generic[T]):
    """
    Keyed cache of CachedResponse entries guarded by one lock.

    Readers get an immutable snapshot; writers replace entries whole.
    """

    def __init__(self, name: str):
        self._name = name
        self._entries: Dict[Hashable, CachedResponse[T]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: Hashable = SINGLE) -> CachedResponse[T]:
        """Snapshot of the entry for key (EMPTY when absent)."""
        with self._lock:
            return self._entries.get(key, EMPTY)

    def payload(self, key: Hashable = SINGLE) -> Optional[T]:
        return self.get(key).payload

    def lookup_fresh(
        self,
        descriptor: EndpointDescriptor,
        now: float,
        key: Hashable = SINGLE,
    ) -> Optional[CachedResponse[T]]:
        """
        Return the entry if it is fresh, else None.

        Hit/miss counters are updated in the same critical section.
        """
        with self._lock:
            entry = self._entries.get(key, EMPTY)
            if entry.is_fresh(descriptor, now):
                self._hits += 1
                return entry
            self._misses += 1
            return None

    def put(
        self,
        payload: T,
        fetched_at: float,
        key: Hashable = SINGLE,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> CachedResponse[T]:
        """Replace the entry for key with a new successful response."""
        entry = CachedResponse(
            fetched_at=fetched_at,
            payload=payload,
            status_code=status_code,
            headers=dict(headers or {}),
        )
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"[{self._name}] stored entry for {key if key is not SINGLE else '<single>'}")
        return entry

    def invalidate(self, key: Hashable = SINGLE) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def items(self) -> Iterator[Tuple[Hashable, CachedResponse[T]]]:
        """Iterate over a snapshot of all entries."""
        with self._lock:
            snapshot = list(self._entries.items())
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }


# ============================================================
# EXCHANGE STORE
# ============================================================

class ExchangeStore:
    """
    Per-service store of cached exchange data.

    Owned by (or injected into) one ExchangeService; each field is an
    independent ResponseCache with its own lock.
    """

    def __init__(self, name: str):
        self.name = name
        self._caches: Dict[str, ResponseCache] = {}
        self._lock = threading.Lock()

    def cache(self, field_name: str) -> ResponseCache:
        """Get or create the cache for a store field."""
        with self._lock:
            cache = self._caches.get(field_name)
            if cache is None:
                cache = ResponseCache(f"{self.name}.{field_name}")
                self._caches[field_name] = cache
            return cache

    def clear(self) -> None:
        with self._lock:
            caches = list(self._caches.values())
        for cache in caches:
            cache.clear()

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            caches = dict(self._caches)
        return {name: cache.get_stats() for name, cache in caches.items()}


__all__ = [
    "SINGLE",
    "EMPTY",
    "CachedResponse",
    "ResponseCache",
    "ExchangeStore",
]
