"""
Exchange Client - Metrics.

============================================================
PURPOSE
============================================================
In-memory metrics for the fetch path.

METRICS TRACKED:
- Request latency (overall and per endpoint)
- Request success/failure counts
- Failures by error kind
- Cache hits and misses

============================================================
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of counted events."""

    REQUEST_SUCCESS = "request_success"
    REQUEST_FAILURE = "request_failure"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"


@dataclass
class LatencyStats:
    """Latency statistics."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        """Average latency in ms."""
        return self.total_ms / self.count if self.count > 0 else 0.0

    def record(self, latency_ms: float) -> None:
        """Record a latency measurement."""
        self.count += 1
        self.total_ms += latency_ms
        self.min_ms = min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg_ms": self.avg_ms,
            "min_ms": self.min_ms if self.min_ms != float("inf") else 0,
            "max_ms": self.max_ms,
        }


class ClientMetrics:
    """
    Metrics collector for one exchange service.

    Thread-safe; completions may record from any thread.
    """

    def __init__(self, exchange_id: str, max_recent: int = 100):
        """
        Initialize metrics.

        Args:
            exchange_id: Exchange identifier
            max_recent: Number of recent requests kept for debugging
        """
        self._exchange_id = exchange_id
        self._max_recent = max_recent
        self._lock = threading.Lock()
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._start_time = datetime.utcnow()
        self._latency: Dict[str, LatencyStats] = defaultdict(LatencyStats)
        self._counters: Dict[MetricType, int] = {mt: 0 for mt in MetricType}
        self._error_kinds: Dict[str, int] = defaultdict(int)
        self._recent_requests: List[Dict[str, Any]] = []

    # --------------------------------------------------------
    # RECORDING
    # --------------------------------------------------------

    def record_request(
        self,
        endpoint: str,
        latency_ms: float,
        success: bool,
        status_code: Optional[int] = None,
        error_kind: Optional[str] = None,
    ) -> None:
        """
        Record a request.

        Args:
            endpoint: Endpoint path
            latency_ms: Request latency in ms
            success: Whether the response decoded successfully
            status_code: HTTP status code
            error_kind: ErrorKind value if failed
        """
        with self._lock:
            self._latency[endpoint].record(latency_ms)
            self._latency["_all"].record(latency_ms)

            if success:
                self._counters[MetricType.REQUEST_SUCCESS] += 1
            else:
                self._counters[MetricType.REQUEST_FAILURE] += 1
                if error_kind:
                    self._error_kinds[error_kind] += 1

            self._recent_requests.append({
                "timestamp": datetime.utcnow().isoformat(),
                "endpoint": endpoint,
                "latency_ms": latency_ms,
                "success": success,
                "status_code": status_code,
                "error_kind": error_kind,
            })
            if len(self._recent_requests) > self._max_recent:
                self._recent_requests.pop(0)

    def record_cache(self, hit: bool) -> None:
        """Record a cache lookup."""
        with self._lock:
            self._counters[MetricType.CACHE_HIT if hit else MetricType.CACHE_MISS] += 1

    # --------------------------------------------------------
    # REPORTING
    # --------------------------------------------------------

    def get_summary(self) -> Dict[str, Any]:
        """
        Get metrics summary.

        Returns:
            Dict with all metrics
        """
        with self._lock:
            uptime = (datetime.utcnow() - self._start_time).total_seconds()
            all_latency = self._latency.get("_all", LatencyStats())
            success = self._counters[MetricType.REQUEST_SUCCESS]
            failure = self._counters[MetricType.REQUEST_FAILURE]
            hits = self._counters[MetricType.CACHE_HIT]
            misses = self._counters[MetricType.CACHE_MISS]
            total_requests = success + failure
            lookups = hits + misses

            return {
                "exchange_id": self._exchange_id,
                "uptime_seconds": uptime,
                "requests": {
                    "total": total_requests,
                    "success": success,
                    "failure": failure,
                    "success_rate": success / total_requests if total_requests > 0 else 1.0,
                },
                "latency": {
                    "avg_ms": all_latency.avg_ms,
                    "min_ms": all_latency.min_ms if all_latency.min_ms != float("inf") else 0,
                    "max_ms": all_latency.max_ms,
                },
                "cache": {
                    "hits": hits,
                    "misses": misses,
                    "hit_rate": hits / lookups if lookups > 0 else 0.0,
                },
                "errors": dict(self._error_kinds),
            }

    def get_latency_by_endpoint(self) -> Dict[str, Dict[str, float]]:
        """Get latency stats by endpoint."""
        with self._lock:
            return {
                endpoint: stats.to_dict()
                for endpoint, stats in self._latency.items()
                if endpoint != "_all"
            }

    def get_recent_requests(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Get recent requests."""
        with self._lock:
            return list(self._recent_requests[-limit:])

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._reset_locked()


__all__ = [
    "MetricType",
    "LatencyStats",
    "ClientMetrics",
]
