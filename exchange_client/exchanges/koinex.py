"""
Koinex Exchange Service.

Single public endpoint: GET /ticker returns ``{"prices": {code: price}}``
with every price quoted in INR. Refetched at most once a minute.
"""

import logging
from decimal import Decimal
from typing import Any, List, Optional

from ..currency import CurrencyPair
from ..endpoints import A_MINUTE, EndpointDescriptor, HttpMethod, VerbosityLevel
from ..models import FetchResult, PriceTicker, RecordCastError, decimal_from_any
from .base import ExchangeService


logger = logging.getLogger(__name__)


KOINEX_REST_URL = "https://koinex.in/api"
KOINEX_QUOTE_CODE = "INR"


def ticker_endpoint(host: str = KOINEX_REST_URL) -> EndpointDescriptor:
    return EndpointDescriptor(
        name="get_tickers",
        host=host,
        path="/ticker",
        method=HttpMethod.GET,
        refetch_interval=A_MINUTE,
        log_level=VerbosityLevel.URL,
    )


class KoinexService(ExchangeService):
    """Koinex integration: INR-quoted last prices."""

    TICKERS = "tickers"

    def __init__(self, *args, host: str = KOINEX_REST_URL, **kwargs):
        self._host = host
        super().__init__(*args, **kwargs)

    @property
    def exchange_id(self) -> str:
        return "koinex"

    @property
    def tickers(self) -> List[PriceTicker]:
        return self._store.cache(self.TICKERS).payload() or []

    def price_for(self, pair: CurrencyPair) -> Optional[Decimal]:
        for ticker in self.tickers:
            if ticker.pair == pair:
                return ticker.price
        return None

    def _decode_tickers(self, json: Any) -> List[PriceTicker]:
        if not isinstance(json, dict) or not isinstance(json.get("prices"), dict):
            raise RecordCastError("expected object with a 'prices' object")

        store = self.user_preference.currency_store
        inr = store.for_code(KOINEX_QUOTE_CODE)
        return [
            PriceTicker(
                pair=CurrencyPair(store.for_code(code), inr),
                price=decimal_from_any(value),
            )
            for code, value in json["prices"].items()
        ]

    async def get_tickers(self) -> FetchResult[List[PriceTicker]]:
        """All last prices, quoted in INR."""
        return await self._cached_or_fetch(
            self._store.cache(self.TICKERS),
            ticker_endpoint(self._host),
            self._decode_tickers,
        )


__all__ = [
    "KOINEX_REST_URL",
    "KoinexService",
    "ticker_endpoint",
]
