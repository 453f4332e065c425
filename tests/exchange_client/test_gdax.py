"""
GDAX Service Tests.

============================================================
PURPOSE
============================================================
End-to-end behaviour of the GDAX service over MockTransport with a
MockClock driving cache freshness.

TEST CATEGORIES:
- Cache-or-fetch scenario (fetched / cached / refetched)
- Failure surfaces leave caches untouched
- Product filtering and record dropping
- Signed accounts request, missing credentials
- Fan-out/join for tickers and account balances
- Balance conversion fallback order

============================================================
"""

import asyncio
import base64
from decimal import Decimal

import pytest

from exchange_client.cache import ExchangeStore
from exchange_client.clock import MockClock
from exchange_client.currency import Currency, CurrencyPair, UserPreference
from exchange_client.errors import ConfigurationError, ErrorKind
from exchange_client.exchanges.gdax import GDAXService, products_endpoint, ticker_endpoint
from exchange_client.models import Account, ResponseType, Ticker
from exchange_client.nonce import NonceClock
from exchange_client.signing import Credentials
from exchange_client.transport import MockTransport


SECRET = base64.b64encode(b"gdax-secret").decode("ascii")


def product(product_id, display_name=None):
    base, quote = product_id.split("-")
    return {
        "id": product_id,
        "base_currency": base,
        "quote_currency": quote,
        "base_min_size": "0.01",
        "base_max_size": "10000",
        "quote_increment": "0.01",
        "display_name": display_name or f"{base}/{quote}",
        "margin_enabled": False,
    }


def ticker(price):
    return {
        "trade_id": 1,
        "price": price,
        "size": "0.1",
        "bid": price,
        "ask": price,
        "volume": "1000",
        "time": "2018-01-01T00:00:00.000000Z",
    }


def account(currency, balance):
    return {
        "id": f"{currency}-account",
        "currency": currency,
        "balance": balance,
        "available": balance,
        "hold": "0",
        "profile_id": "profile",
    }


def pair(code):
    quantity, price = code.split("/")
    return CurrencyPair(Currency(quantity), Currency(price))


def make_service(transport=None, credentials=None, ignored_fiats=(), clock=None, store=None):
    return GDAXService(
        UserPreference.from_codes("USD", "BTC", ignored_fiats=ignored_fiats),
        credentials=credentials or Credentials("gdax-key", SECRET, "gdax-pass"),
        transport=transport or MockTransport(),
        store=store,
        clock=clock or MockClock(),
        nonce_clock=NonceClock(),
    )


class TestEndpoints:
    """Tests for GDAX endpoint descriptors."""

    def test_products_refetched_monthly(self):
        descriptor = products_endpoint()

        assert descriptor.url == "https://api.gdax.com/products"
        assert descriptor.refetch_interval == 30 * 24 * 3600

    def test_ticker_path_uses_product_id(self):
        descriptor = ticker_endpoint(pair("BTC/USD"))

        assert descriptor.path == "/products/BTC-USD/ticker"
        assert descriptor.refetch_interval == 60
        assert descriptor.authenticated is False


class TestCacheOrFetch:
    """Tests for the fetch/cache cycle."""

    @pytest.mark.asyncio
    async def test_refetch_interval_scenario(self):
        """t=0 fetched, t=30 cached, t=61 fetched with new data."""
        transport = MockTransport()
        transport.add_route("/products/BTC-USD/ticker", ticker("100.00"))
        transport.add_route("/products/BTC-USD/ticker", ticker("101.00"))
        clock = MockClock()
        service = make_service(transport, clock=clock)
        btc_usd = pair("BTC/USD")

        first = await service.get_ticker(btc_usd)
        assert first.status == ResponseType.FETCHED
        assert first.payload.price == Decimal("100.00")
        assert first.pair == btc_usd

        clock.advance(30)
        second = await service.get_ticker(btc_usd)
        assert second.status == ResponseType.CACHED
        assert second.payload.price == Decimal("100.00")

        clock.advance(31)
        third = await service.get_ticker(btc_usd)
        assert third.status == ResponseType.FETCHED
        assert third.payload.price == Decimal("101.00")

        assert len(transport.requests_for("/products/BTC-USD/ticker")) == 2
        assert service.price_for(btc_usd) == Decimal("101.00")

    @pytest.mark.asyncio
    async def test_tickers_cached_per_pair(self):
        """A fresh BTC-USD ticker does not make ETH-USD fresh."""
        transport = MockTransport()
        transport.add_route("/products/BTC-USD/ticker", ticker("100"))
        transport.add_route("/products/ETH-USD/ticker", ticker("10"))
        service = make_service(transport)

        await service.get_ticker(pair("BTC/USD"))
        result = await service.get_ticker(pair("ETH/USD"))

        assert result.status == ResponseType.FETCHED
        assert service.price_for(pair("BTC/USD")) == Decimal("100")
        assert service.price_for(pair("ETH/USD")) == Decimal("10")

    @pytest.mark.asyncio
    async def test_cache_metrics(self):
        transport = MockTransport().add_route("/products", [product("BTC-USD")])
        service = make_service(transport)

        await service.get_products()
        await service.get_products()

        cache = service.metrics.get_summary()["cache"]
        assert cache["hits"] == 1
        assert cache["misses"] == 1


class TestFailures:
    """Tests for failed fetches."""

    @pytest.mark.asyncio
    async def test_empty_body_leaves_cache_untouched(self):
        transport = MockTransport().add_route("/products", None)
        service = make_service(transport)

        result = await service.get_products()

        assert result.status == ResponseType.FAILED
        assert result.error.kind == ErrorKind.EMPTY_BODY
        assert service.products == []

    @pytest.mark.asyncio
    async def test_non_json(self):
        transport = MockTransport().add_route("/products", "<html>maintenance</html>")
        service = make_service(transport)

        result = await service.get_products()

        assert result.error.kind == ErrorKind.DECODE

    @pytest.mark.asyncio
    async def test_wrong_shape_is_field_cast(self):
        """A non-list products payload fails the whole fetch."""
        transport = MockTransport().add_route("/products", {"products": []})
        service = make_service(transport)

        result = await service.get_products()

        assert result.status == ResponseType.FAILED
        assert result.error.kind == ErrorKind.FIELD_CAST
        assert "get_products" in result.error.message
        assert service.products == []

    @pytest.mark.asyncio
    async def test_http_401_on_accounts(self):
        transport = MockTransport().add_route(
            "/accounts", {"message": "invalid signature"}, status=401
        )
        service = make_service(transport)

        result = await service.list_accounts()

        assert result.status == ResponseType.FAILED
        assert result.error.kind == ErrorKind.HTTP_STATUS
        assert result.error.status_code == 401
        assert service.accounts == []

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_entry(self):
        """A failed refetch serves nothing new and keeps the old payload."""
        transport = MockTransport()
        transport.add_route("/products/BTC-USD/ticker", ticker("100"))
        transport.add_route("/products/BTC-USD/ticker", None, status=500)
        clock = MockClock()
        service = make_service(transport, clock=clock)

        await service.get_ticker(pair("BTC/USD"))
        clock.advance(120)
        result = await service.get_ticker(pair("BTC/USD"))

        assert result.status == ResponseType.FAILED
        assert service.price_for(pair("BTC/USD")) == Decimal("100")

    @pytest.mark.asyncio
    async def test_failed_fetch_is_retried_by_next_caller(self):
        transport = MockTransport()
        transport.add_route("/products", None)
        transport.add_route("/products", [product("BTC-USD")])
        service = make_service(transport)

        assert (await service.get_products()).status == ResponseType.FAILED
        assert (await service.get_products()).status == ResponseType.FETCHED


class TestProducts:
    """Tests for product decoding and filtering."""

    @pytest.mark.asyncio
    async def test_ignored_fiats_filtered(self):
        transport = MockTransport().add_route(
            "/products", [product("BTC-USD"), product("BTC-EUR"), product("ETH-GBP")]
        )
        service = make_service(transport, ignored_fiats=["EUR", "GBP"])

        result = await service.get_products()

        assert [p.pair for p in result.payload] == [pair("BTC/USD")]
        assert service.products == result.payload

    @pytest.mark.asyncio
    async def test_bad_record_dropped(self, caplog):
        """One malformed product is dropped, the rest are kept."""
        bad = product("ETH-USD")
        del bad["display_name"]
        transport = MockTransport().add_route(
            "/products", [product("BTC-USD"), bad, product("LTC-USD")]
        )
        service = make_service(transport)

        result = await service.get_products()

        assert result.status == ResponseType.FETCHED
        assert [str(p.pair) for p in result.payload] == ["BTC/USD", "LTC/USD"]
        assert "Cast Failed in get_products" in caplog.text


class TestAccounts:
    """Tests for the signed accounts endpoint."""

    @pytest.mark.asyncio
    async def test_signed_request(self):
        transport = MockTransport().add_route("/accounts", [account("BTC", "1.5")])
        service = make_service(transport)

        result = await service.list_accounts()

        assert result.status == ResponseType.FETCHED
        assert result.payload[0].quantity == Decimal("1.5")
        headers = transport.requests_for("/accounts")[0].headers
        assert headers["CB-ACCESS-KEY"] == "gdax-key"
        assert headers["CB-ACCESS-PASSPHRASE"] == "gdax-pass"
        assert "CB-ACCESS-SIGN" in headers
        assert "CB-ACCESS-TIMESTAMP" in headers

    @pytest.mark.asyncio
    async def test_public_requests_unsigned(self):
        transport = MockTransport().add_route("/products", [product("BTC-USD")])
        service = make_service(transport)

        await service.get_products()

        assert transport.requests_for("/products")[0].headers == {}

    @pytest.mark.asyncio
    async def test_missing_credentials_raise(self):
        transport = MockTransport()
        service = make_service(transport, credentials=Credentials(key="only-key"))

        with pytest.raises(ConfigurationError):
            await service.list_accounts()

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_account_without_currency_dropped(self):
        transport = MockTransport().add_route(
            "/accounts", [account("BTC", "1"), {"id": "x", "balance": "5"}]
        )
        service = make_service(transport)

        result = await service.list_accounts()

        assert [a.currency.code for a in result.payload] == ["BTC"]


class TestFanOut:
    """Tests for compound operations."""

    @pytest.mark.asyncio
    async def test_account_balances_join_after_last_ticker(self):
        """Tickers complete C/D, A/B, E/F; accounts are listed only after E/F."""
        transport = MockTransport()
        transport.add_route("/products", [product("A-B"), product("C-D"), product("E-F")])
        transport.add_route("/products/A-B/ticker", ticker("1"), delay_seconds=0.03)
        transport.add_route("/products/C-D/ticker", ticker("2"), delay_seconds=0.01)
        transport.add_route("/products/E-F/ticker", ticker("3"), delay_seconds=0.06)
        transport.add_route("/accounts", [account("A", "2")])
        service = make_service(transport)

        completed = []

        def on_ticker(ticker_pair, result):
            assert transport.requests_for("/accounts") == []
            completed.append(str(ticker_pair))

        result = await service.get_account_balances(on_ticker=on_ticker)

        assert completed == ["C/D", "A/B", "E/F"]
        assert result.status == ResponseType.FETCHED
        assert len(transport.requests_for("/accounts")) == 1
        assert service.price_for(pair("E/F")) == Decimal("3")

    @pytest.mark.asyncio
    async def test_failed_ticker_still_joins(self):
        """A failing branch counts as completed."""
        transport = MockTransport()
        transport.add_route("/products", [product("BTC-USD"), product("ETH-USD")])
        transport.add_route("/products/BTC-USD/ticker", ticker("100"))
        transport.add_route("/products/ETH-USD/ticker", None, status=500)
        transport.add_route("/accounts", [account("BTC", "1")])
        service = make_service(transport)

        result = await service.get_account_balances()

        assert result.status == ResponseType.FETCHED
        assert service.price_for(pair("ETH/USD")) is None

    @pytest.mark.asyncio
    async def test_products_failure_stops_balances(self):
        transport = MockTransport().add_route("/products", None)
        service = make_service(transport)

        result = await service.get_account_balances()

        assert result.status == ResponseType.FAILED
        assert result.error.kind == ErrorKind.EMPTY_BODY
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_cancelled_fan_out_cancels_branches(self):
        """Cancelling the caller cancels and awaits the outstanding branches."""
        service = make_service()
        cancelled = []

        async def fetch(ticker_pair):
            if ticker_pair == pair("BTC/USD"):
                return None
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(str(ticker_pair))
                raise

        task = asyncio.ensure_future(
            service._fan_out([pair("BTC/USD"), pair("ETH/USD")], fetch)
        )
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert cancelled == ["ETH/USD"]

    @pytest.mark.asyncio
    async def test_get_tickers(self):
        transport = MockTransport()
        transport.add_route("/products", [product("BTC-USD"), product("ETH-USD")])
        transport.add_route("/products/BTC-USD/ticker", ticker("100"))
        transport.add_route("/products/ETH-USD/ticker", ticker("10"))
        service = make_service(transport)

        results = await service.get_tickers()

        assert set(results) == {pair("BTC/USD"), pair("ETH/USD")}
        assert all(r.status == ResponseType.FETCHED for r in results.values())

        again = await service.get_tickers()
        assert all(r.status == ResponseType.CACHED for r in again.values())

    @pytest.mark.asyncio
    async def test_get_tickers_without_products(self):
        service = make_service(MockTransport().add_route("/products", "oops"))

        assert await service.get_tickers() == {}


class TestBalances:
    """Tests for balance aggregation."""

    def _seed(self, service, tickers, accounts):
        now = service.clock.timestamp()
        cache = service.store.cache(GDAXService.TICKERS)
        for code, price in tickers.items():
            cache.put(Ticker.from_json({"price": price}, pair(code)), fetched_at=now, key=pair(code))
        service.store.cache(GDAXService.ACCOUNTS).put(
            [Account.from_json(account(c, b), service.user_preference.currency_store)
             for c, b in accounts.items()],
            fetched_at=now,
        )

    def test_fiat_pair_preferred(self):
        service = make_service()
        self._seed(service, {"ETH/USD": "500", "ETH/BTC": "0.05"}, {"ETH": "2"})

        assert service.get_total_balance() == Decimal("1000")

    def test_crypto_pair_fallback(self):
        service = make_service()
        self._seed(service, {"LTC/BTC": "0.02"}, {"LTC": "10"})

        assert service.get_total_balance() == Decimal("0.20")

    def test_raw_quantity_fallback(self):
        service = make_service()
        self._seed(service, {}, {"USD": "7"})

        assert service.get_total_balance() == Decimal("7")

    def test_total_sums_all_accounts(self):
        service = make_service()
        self._seed(
            service,
            {"ETH/USD": "500", "LTC/BTC": "0.02"},
            {"ETH": "2", "LTC": "10", "USD": "7"},
        )

        assert service.get_total_balance() == Decimal("1007.20")

    def test_no_accounts(self):
        assert make_service().get_total_balance() == Decimal("0")


class TestServiceWiring:
    """Tests for construction and injected collaborators."""

    def test_exchange_id_and_mock_flag(self):
        service = make_service()

        assert service.exchange_id == "gdax"
        assert service.is_mock

    def test_injected_store_is_used(self):
        store = ExchangeStore("shared")
        first = make_service(store=store)
        second = make_service(store=store)

        assert first.store is second.store

    def test_default_stores_are_independent(self):
        assert make_service().store is not make_service().store

    def test_timestamp_in_seconds_increases(self):
        service = make_service()

        first = service.timestamp_in_seconds()
        second = service.timestamp_in_seconds()

        assert second > first

    @pytest.mark.asyncio
    async def test_async_context_manager_closes_transport(self):
        async with make_service() as service:
            assert service.exchange_id == "gdax"
