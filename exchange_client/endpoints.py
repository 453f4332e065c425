"""
Exchange Client - Endpoint Descriptors.

============================================================
PURPOSE
============================================================
Static per-call metadata and the cache freshness rule.

Each exchange declares its endpoints as EndpointDescriptor values
(host, path, method, authentication flag, refetch interval, log
verbosity). "Ticker for BTC-USD" and "ticker for ETH-USD" are distinct
descriptors sharing the same refetch rule.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Mapping, Optional


# ============================================================
# REFETCH INTERVALS (seconds)
# ============================================================

A_MINUTE = 60.0
AN_HOUR = 60 * A_MINUTE
A_DAY = 24 * AN_HOUR
A_MONTH = 30 * A_DAY


class HttpMethod(Enum):
    """Supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


class VerbosityLevel(IntEnum):
    """
    Per-endpoint logging verbosity.

    A log line tagged with content level X is emitted when
    ``X <= descriptor.log_level``.
    """

    NONE = 0
    URL = 1
    REQUEST_HEADERS = 2
    RESPONSE = 3
    RESPONSE_HEADERS = 4


@dataclass(frozen=True)
class EndpointDescriptor:
    """Immutable description of one logical call."""

    name: str
    host: str
    path: str
    method: HttpMethod = HttpMethod.GET
    authenticated: bool = False
    refetch_interval: float = A_MINUTE
    log_level: VerbosityLevel = VerbosityLevel.URL
    post_data: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({}),
        hash=False,
    )

    def __post_init__(self):
        if self.refetch_interval < 0:
            raise ValueError(f"refetch_interval must be >= 0, got {self.refetch_interval}")
        # Freeze caller-supplied dicts so the descriptor stays immutable
        if not isinstance(self.post_data, MappingProxyType):
            object.__setattr__(self, "post_data", MappingProxyType(dict(self.post_data)))

    @property
    def url(self) -> str:
        """Full request URL."""
        return f"{self.host}{self.path}"

    def check_interval(self, last_fetched_at: Optional[float], now: float) -> bool:
        """
        Decide whether a cached response may be served.

        Args:
            last_fetched_at: Timestamp of the last successful fetch, if any
            now: Current timestamp

        Returns:
            True when the cache is fresh (serve cached), False when a fetch
            is required
        """
        if last_fetched_at is None:
            return False
        return now - last_fetched_at < self.refetch_interval

    def should_log(self, content: VerbosityLevel) -> bool:
        """Whether a log line of the given content level is enabled."""
        return content != VerbosityLevel.NONE and content <= self.log_level


__all__ = [
    "A_MINUTE",
    "AN_HOUR",
    "A_DAY",
    "A_MONTH",
    "HttpMethod",
    "VerbosityLevel",
    "EndpointDescriptor",
]
