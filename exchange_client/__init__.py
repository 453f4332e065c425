"""
Exchange Client.

============================================================
PURPOSE
============================================================
Asynchronous client for cryptocurrency exchange REST APIs: cached
market data and account balances aggregated in the user's preferred
currency.

COMPONENTS:
- ExchangeService: GDAXService, KoinexService
- ServiceFactory: Create services from configuration
- EndpointDescriptor: Declarative endpoint + refetch policy
- RequestSigner: HMAC-SHA256 request signing
- ResponseCache / ExchangeStore: Per-service response caches
- FanOutJoin: Exactly-once completion join
- NonceClock: Strictly increasing second-granularity nonce
- Transport: AiohttpTransport, MockTransport

============================================================
"""

from .cache import CachedResponse, ExchangeStore, ResponseCache
from .clock import ClockProtocol, MockClock, SystemClock
from .config import ClientConfig, PreferenceConfig
from .currency import Currency, CurrencyPair, CurrencyStore, UserPreference
from .endpoints import (
    A_DAY,
    A_MINUTE,
    A_MONTH,
    AN_HOUR,
    EndpointDescriptor,
    HttpMethod,
    VerbosityLevel,
)
from .errors import ConfigurationError, ErrorKind, FetchError
from .exchanges import ExchangeService, GDAXService, KoinexService
from .factory import ServiceFactory, create_service
from .join import FanOutJoin, async_join
from .metrics import ClientMetrics
from .models import (
    Account,
    BalanceType,
    FetchResult,
    PriceTicker,
    Product,
    ResponseType,
    Ticker,
)
from .nonce import NonceClock, get_nonce_clock
from .signing import Credentials, RequestSigner, compute_signature
from .transport import AiohttpTransport, MockTransport, Transport


__all__ = [
    # Services
    "ExchangeService",
    "GDAXService",
    "KoinexService",
    "ServiceFactory",
    "create_service",
    # Configuration
    "ClientConfig",
    "PreferenceConfig",
    "Credentials",
    # Currencies
    "Currency",
    "CurrencyPair",
    "CurrencyStore",
    "UserPreference",
    # Endpoints
    "EndpointDescriptor",
    "HttpMethod",
    "VerbosityLevel",
    "A_MINUTE",
    "AN_HOUR",
    "A_DAY",
    "A_MONTH",
    # Results and records
    "ResponseType",
    "FetchResult",
    "BalanceType",
    "Product",
    "Ticker",
    "Account",
    "PriceTicker",
    # Errors
    "ErrorKind",
    "FetchError",
    "ConfigurationError",
    # Infrastructure
    "CachedResponse",
    "ResponseCache",
    "ExchangeStore",
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "NonceClock",
    "get_nonce_clock",
    "FanOutJoin",
    "async_join",
    "RequestSigner",
    "compute_signature",
    "ClientMetrics",
    "Transport",
    "AiohttpTransport",
    "MockTransport",
]
