"""
GDAX Exchange Service.

============================================================
PURPOSE
============================================================
Multi-endpoint, partly authenticated exchange integration.

ENDPOINTS:
- GET /products                      public, refetch monthly
- GET /products/{Q}-{P}/ticker       public, refetch every minute
- GET /accounts                      signed, refetch every minute

AUTHENTICATION:
CB-ACCESS-SIGN / CB-ACCESS-TIMESTAMP / CB-ACCESS-PASSPHRASE /
CB-ACCESS-KEY, signature = BASE64(HMAC-SHA256(secret, ts+METHOD+path+body))

COMPOUND OPERATIONS:
- get_account_balances: products -> ticker per pair (fan-out, join)
  -> accounts
- get_tickers: products -> ticker per pair, reporting each as it lands

============================================================
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..currency import CurrencyPair
from ..endpoints import A_MINUTE, A_MONTH, EndpointDescriptor, HttpMethod, VerbosityLevel
from ..models import Account, BalanceType, FetchResult, Product, ResponseType, Ticker
from ..signing import SignatureHeaders
from .base import ExchangeService, PairCallback


logger = logging.getLogger(__name__)


GDAX_REST_URL = "https://api.gdax.com"


# ============================================================
# ENDPOINTS
# ============================================================

def products_endpoint(host: str = GDAX_REST_URL) -> EndpointDescriptor:
    return EndpointDescriptor(
        name="get_products",
        host=host,
        path="/products",
        method=HttpMethod.GET,
        refetch_interval=A_MONTH,
        log_level=VerbosityLevel.URL,
    )


def ticker_endpoint(pair: CurrencyPair, host: str = GDAX_REST_URL) -> EndpointDescriptor:
    return EndpointDescriptor(
        name="get_product_ticker",
        host=host,
        path=f"/products/{pair.gdax_product_id}/ticker",
        method=HttpMethod.GET,
        refetch_interval=A_MINUTE,
        log_level=VerbosityLevel.URL,
    )


def accounts_endpoint(host: str = GDAX_REST_URL) -> EndpointDescriptor:
    return EndpointDescriptor(
        name="list_accounts",
        host=host,
        path="/accounts",
        method=HttpMethod.GET,
        authenticated=True,
        refetch_interval=A_MINUTE,
        log_level=VerbosityLevel.URL,
    )


# ============================================================
# SERVICE
# ============================================================

class GDAXService(ExchangeService):
    """GDAX integration: products, per-pair tickers and accounts."""

    signature_headers = SignatureHeaders(
        signature="CB-ACCESS-SIGN",
        timestamp="CB-ACCESS-TIMESTAMP",
        passphrase="CB-ACCESS-PASSPHRASE",
        key="CB-ACCESS-KEY",
    )

    PRODUCTS = "products"
    TICKERS = "tickers"
    ACCOUNTS = "accounts"

    def __init__(self, *args, host: str = GDAX_REST_URL, **kwargs):
        """
        Initialize GDAX service.

        Args:
            host: REST base URL
            *args, **kwargs: See ExchangeService
        """
        self._host = host
        super().__init__(*args, **kwargs)

    @property
    def exchange_id(self) -> str:
        return "gdax"

    # --------------------------------------------------------
    # CACHED STATE
    # --------------------------------------------------------

    @property
    def products(self) -> List[Product]:
        return self._store.cache(self.PRODUCTS).payload() or []

    @property
    def accounts(self) -> List[Account]:
        return self._store.cache(self.ACCOUNTS).payload() or []

    def ticker(self, pair: CurrencyPair) -> Optional[Ticker]:
        return self._store.cache(self.TICKERS).payload(pair)

    def price_for(self, pair: CurrencyPair) -> Optional[Decimal]:
        ticker = self.ticker(pair)
        return ticker.price if ticker is not None else None

    def balances(self) -> List[BalanceType]:
        return list(self.accounts)

    # --------------------------------------------------------
    # DECODERS
    # --------------------------------------------------------

    def _decode_products(self, json: Any) -> List[Product]:
        store = self.user_preference.currency_store
        products = self._decode_records(
            json, lambda item: Product.from_json(item, store), "get_products"
        )
        ignored = self.user_preference.ignored_fiats
        return [p for p in products if p.quote_currency not in ignored]

    def _decode_accounts(self, json: Any) -> List[Account]:
        store = self.user_preference.currency_store
        return self._decode_records(
            json, lambda item: Account.from_json(item, store), "list_accounts"
        )

    # --------------------------------------------------------
    # SINGLE-ENDPOINT OPERATIONS
    # --------------------------------------------------------

    async def get_products(self) -> FetchResult[List[Product]]:
        """Tradable products, excluding ignored quote currencies."""
        return await self._cached_or_fetch(
            self._store.cache(self.PRODUCTS),
            products_endpoint(self._host),
            self._decode_products,
        )

    async def get_ticker(self, pair: CurrencyPair) -> FetchResult[Ticker]:
        """Ticker for one pair, cached per pair."""
        return await self._cached_or_fetch(
            self._store.cache(self.TICKERS),
            ticker_endpoint(pair, self._host),
            lambda json: Ticker.from_json(json, pair),
            key=pair,
            pair=pair,
        )

    async def list_accounts(self) -> FetchResult[List[Account]]:
        """Account balances (signed request)."""
        return await self._cached_or_fetch(
            self._store.cache(self.ACCOUNTS),
            accounts_endpoint(self._host),
            self._decode_accounts,
        )

    # --------------------------------------------------------
    # COMPOUND OPERATIONS
    # --------------------------------------------------------

    async def get_tickers(
        self,
        on_ticker: Optional[PairCallback] = None,
    ) -> Dict[CurrencyPair, FetchResult[Ticker]]:
        """
        Fetch the ticker of every known product.

        Args:
            on_ticker: Called with (pair, result) as each ticker completes

        Returns:
            Mapping of pair to ticker result (empty if products failed)
        """
        products = await self.get_products()
        if products.status == ResponseType.FAILED:
            logger.warning(f"[gdax] Tickers skipped, products unavailable: {products.error}")
            return {}
        return await self._fan_out(
            [p.pair for p in products.payload], self.get_ticker, on_ticker
        )

    async def get_account_balances(
        self,
        on_ticker: Optional[PairCallback] = None,
    ) -> FetchResult[List[Account]]:
        """
        Refresh everything needed for balance aggregation.

        Products, then one ticker per product pair concurrently; once every
        ticker has completed (successfully or not) the accounts are listed.

        Returns:
            The accounts result, or the products failure
        """
        products = await self.get_products()
        if products.status == ResponseType.FAILED:
            logger.warning(f"[gdax] Balances skipped, products unavailable: {products.error}")
            return FetchResult.failed(products.error)

        await self._fan_out(
            [p.pair for p in products.payload], self.get_ticker, on_ticker
        )
        return await self.list_accounts()


__all__ = [
    "GDAX_REST_URL",
    "GDAXService",
    "products_endpoint",
    "ticker_endpoint",
    "accounts_endpoint",
]
