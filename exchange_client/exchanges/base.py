"""
Exchange Client - Exchange Service Base.

============================================================
PURPOSE
============================================================
Shared machinery for every exchange integration.

- Cache-or-fetch for one endpoint (optionally per sub-key)
- Typed results: CACHED / FETCHED / FAILED
- Fan-out of per-pair fetches with an exactly-once join
- Exchange-agnostic balance conversion into the preferred currency
- Nonce access (independent from request signing)

Concrete services declare their endpoints and decoders; the store,
transport, clocks and metrics are injected or created per service.

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    TypeVar,
)

from ..cache import SINGLE, ExchangeStore, ResponseCache
from ..clock import ClockProtocol, SystemClock
from ..currency import CurrencyPair, UserPreference
from ..endpoints import EndpointDescriptor
from ..errors import ConfigurationError, create_field_cast_error
from ..executor import FetchExecutor
from ..join import async_join
from ..logging_utils import EndpointLogger
from ..metrics import ClientMetrics
from ..models import BalanceType, FetchResult, RecordCastError
from ..nonce import NonceClock, get_nonce_clock
from ..signing import Credentials, RequestSigner, SignatureHeaders
from ..transport import AiohttpTransport, MockTransport, Transport


logger = logging.getLogger(__name__)


T = TypeVar("T")
R = TypeVar("R")

PairCallback = Callable[[CurrencyPair, FetchResult], None]


class ExchangeService(ABC):
    """
    Base class for exchange services.

    Subclasses provide exchange_id, their endpoint descriptors, decoders
    and price_for(); everything else is shared.
    """

    signature_headers: SignatureHeaders = SignatureHeaders()

    def __init__(
        self,
        user_preference: UserPreference,
        credentials: Optional[Credentials] = None,
        transport: Optional[Transport] = None,
        store: Optional[ExchangeStore] = None,
        clock: Optional[ClockProtocol] = None,
        nonce_clock: Optional[NonceClock] = None,
        metrics: Optional[ClientMetrics] = None,
        timeout_seconds: float = 30.0,
    ):
        """
        Initialize service.

        Args:
            user_preference: Reporting preferences
            credentials: API credentials (authenticated endpoints only)
            transport: HTTP transport (default: aiohttp)
            store: Cache store (default: a new store owned by this service)
            clock: Wall clock for cache bookkeeping
            nonce_clock: Nonce generator (default: process-wide instance)
            metrics: Metrics collector
            timeout_seconds: Timeout for the default transport
        """
        self.user_preference = user_preference
        self._transport = transport or AiohttpTransport(timeout_seconds=timeout_seconds)
        self._store = store or ExchangeStore(self.exchange_id)
        self._clock = clock or SystemClock()
        self._nonce_clock = nonce_clock or get_nonce_clock()
        self._metrics = metrics or ClientMetrics(self.exchange_id)
        self._signer = RequestSigner(credentials, headers=self.signature_headers)
        self._executor = FetchExecutor(
            self.exchange_id,
            self._transport,
            self._signer,
            endpoint_logger=EndpointLogger(self.exchange_id),
            metrics=self._metrics,
        )

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    @abstractmethod
    def exchange_id(self) -> str:
        """Exchange identifier."""
        pass

    @property
    def store(self) -> ExchangeStore:
        return self._store

    @property
    def clock(self) -> ClockProtocol:
        return self._clock

    @property
    def metrics(self) -> ClientMetrics:
        return self._metrics

    @property
    def is_mock(self) -> bool:
        """Whether the service talks to an in-process mock transport."""
        return isinstance(self._transport, MockTransport)

    def timestamp_in_seconds(self) -> int:
        """Next process-wide nonce (may block up to ~1 second)."""
        return self._nonce_clock.next()

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> "ExchangeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # --------------------------------------------------------
    # CACHE-OR-FETCH
    # --------------------------------------------------------

    async def _cached_or_fetch(
        self,
        cache: ResponseCache,
        descriptor: EndpointDescriptor,
        decode: Callable[[Any], T],
        key: Hashable = SINGLE,
        pair: Optional[CurrencyPair] = None,
    ) -> FetchResult[T]:
        """
        Serve a fresh cache entry or fetch, decode and store a new one.

        Concurrent callers that both see a stale entry each issue a call;
        the last successful writer wins.

        Raises:
            ConfigurationError: Authenticated endpoint without credentials
        """
        entry = cache.lookup_fresh(descriptor, self._clock.timestamp(), key)
        self._metrics.record_cache(hit=entry is not None)
        if entry is not None:
            return FetchResult.cached(entry.payload, pair)

        if descriptor.authenticated and not self._signer.credentials.is_complete:
            raise ConfigurationError(
                f"{descriptor.name} requires API key, secret and passphrase",
                exchange_id=self.exchange_id,
            )

        outcome = await self._executor.execute(descriptor)
        if not outcome.ok:
            return FetchResult.failed(outcome.error, pair)

        try:
            payload = decode(outcome.payload)
        except RecordCastError as e:
            logger.warning(f"[{self.exchange_id}] Error: Cast Failed in {descriptor.name}: {e}")
            error = create_field_cast_error(
                self.exchange_id, descriptor.name, str(e), outcome.metadata.status_code
            )
            return FetchResult.failed(error, pair)

        cache.put(
            payload,
            fetched_at=self._clock.timestamp(),
            key=key,
            status_code=outcome.metadata.status_code,
            headers=outcome.metadata.headers,
        )
        return FetchResult.fetched(payload, pair)

    def _decode_records(
        self,
        json: Any,
        decode_record: Callable[[Any], R],
        call_site: str,
    ) -> List[R]:
        """
        Decode a JSON list, dropping records that fail to cast.

        Raises:
            RecordCastError: If json is not a list
        """
        if not isinstance(json, list):
            raise RecordCastError(f"expected list, got {type(json).__name__}")

        records = []
        for index, item in enumerate(json):
            try:
                records.append(decode_record(item))
            except RecordCastError as e:
                logger.warning(
                    f"[{self.exchange_id}] Error: Cast Failed in {call_site} "
                    f"(record {index} dropped): {e}"
                )
        return records

    # --------------------------------------------------------
    # FAN-OUT / JOIN
    # --------------------------------------------------------

    async def _fan_out(
        self,
        pairs: Iterable[CurrencyPair],
        fetch: Callable[[CurrencyPair], Awaitable[FetchResult]],
        on_result: Optional[PairCallback] = None,
    ) -> Dict[CurrencyPair, FetchResult]:
        """
        Run fetch(pair) concurrently for every pair and join once.

        A failed branch still counts as completed. Exceptions raised by a
        branch are re-raised after the join. Cancelling the caller cancels
        and awaits every outstanding branch.

        Args:
            pairs: Branch keys (duplicates collapse)
            fetch: Per-pair fetch
            on_result: Called as each branch completes

        Returns:
            Mapping of pair to its result
        """
        unique_pairs = list(dict.fromkeys(pairs))
        join, joined = async_join(unique_pairs)
        results: Dict[CurrencyPair, FetchResult] = {}

        async def branch(pair: CurrencyPair) -> None:
            try:
                result = await fetch(pair)
                results[pair] = result
                if on_result is not None:
                    on_result(pair, result)
            finally:
                join.mark_done(pair)

        tasks = [asyncio.ensure_future(branch(pair)) for pair in unique_pairs]
        try:
            await joined
        except BaseException:
            # Cancelled while waiting: do not leave branches running unjoined
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        await asyncio.gather(*tasks)

        logger.debug(
            f"[{self.exchange_id}] Fan-out joined after {join.total} branches: "
            f"{[str(p) for p in join.completion_order]}"
        )
        return results

    # --------------------------------------------------------
    # BALANCES
    # --------------------------------------------------------

    @abstractmethod
    def price_for(self, pair: CurrencyPair) -> Optional[Decimal]:
        """Cached last price for pair, if any."""
        pass

    def balances(self) -> List[BalanceType]:
        """Cached balances (none for public-only exchanges)."""
        return []

    def balance_in_preferred_currency(self, balance: BalanceType) -> Decimal:
        """
        Convert a balance into the user's preferred currency.

        Order: fiat-quoted ticker, then crypto-quoted ticker, then the raw
        quantity (taken as already in the preferred currency).
        """
        fiat_pair = CurrencyPair(balance.currency, self.user_preference.fiat)
        crypto_pair = CurrencyPair(balance.currency, self.user_preference.crypto)

        price = self.price_for(fiat_pair)
        if price is None:
            price = self.price_for(crypto_pair)
        if price is None:
            return balance.quantity
        return balance.quantity * price

    def get_total_balance(self) -> Decimal:
        """Sum of cached balances in the preferred currency."""
        total = Decimal("0")
        for balance in self.balances():
            total += self.balance_in_preferred_currency(balance)
        return total


__all__ = [
    "ExchangeService",
    "PairCallback",
]
