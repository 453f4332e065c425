"""
Response Cache Tests.

Cached-response invariant, freshness lookups, keyed entries and
per-service store isolation.
"""

import threading

import pytest

from exchange_client.cache import EMPTY, CachedResponse, ExchangeStore, ResponseCache
from exchange_client.currency import CurrencyPair, CurrencyStore
from exchange_client.endpoints import EndpointDescriptor


DESCRIPTOR = EndpointDescriptor(
    name="get_thing", host="https://example.test", path="/thing", refetch_interval=60.0
)


class TestCachedResponse:
    """Tests for CachedResponse."""

    def test_empty_entry(self):
        assert EMPTY.is_empty
        assert EMPTY.payload is None
        assert EMPTY.age_seconds(100.0) is None
        assert not EMPTY.is_fresh(DESCRIPTOR, 100.0)

    def test_payload_requires_timestamp(self):
        """payload present iff fetched_at present."""
        with pytest.raises(ValueError):
            CachedResponse(payload=[1])
        with pytest.raises(ValueError):
            CachedResponse(fetched_at=1.0)

    def test_age_and_freshness(self):
        entry = CachedResponse(fetched_at=100.0, payload=["p"])

        assert entry.age_seconds(130.0) == 30.0
        assert entry.is_fresh(DESCRIPTOR, 159.9)
        assert not entry.is_fresh(DESCRIPTOR, 160.1)


class TestResponseCache:
    """Tests for ResponseCache."""

    def test_missing_key_returns_empty(self):
        cache = ResponseCache("test")

        assert cache.get() is EMPTY
        assert cache.payload() is None
        assert len(cache) == 0

    def test_put_then_lookup_fresh(self):
        cache = ResponseCache("test")
        cache.put(["p"], fetched_at=100.0, status_code=200)

        entry = cache.lookup_fresh(DESCRIPTOR, 130.0)

        assert entry is not None
        assert entry.payload == ["p"]
        assert entry.status_code == 200

    def test_stale_lookup_returns_none(self):
        cache = ResponseCache("test")
        cache.put(["p"], fetched_at=100.0)

        assert cache.lookup_fresh(DESCRIPTOR, 161.0) is None
        assert cache.payload() == ["p"]

    def test_hit_miss_counters(self):
        cache = ResponseCache("test")
        cache.lookup_fresh(DESCRIPTOR, 100.0)
        cache.put(["p"], fetched_at=100.0)
        cache.lookup_fresh(DESCRIPTOR, 110.0)
        cache.lookup_fresh(DESCRIPTOR, 120.0)

        stats = cache.get_stats()

        assert stats == {"entries": 1, "hits": 2, "misses": 1}

    def test_put_replaces_whole_entry(self):
        cache = ResponseCache("test")
        cache.put(["old"], fetched_at=100.0, headers={"A": "1"})
        cache.put(["new"], fetched_at=200.0)

        entry = cache.get()

        assert entry.payload == ["new"]
        assert entry.fetched_at == 200.0
        assert entry.headers == {}

    def test_keyed_entries_are_independent(self):
        """Per-pair entries age separately."""
        store = CurrencyStore()
        btc_usd = CurrencyPair(store.for_code("BTC"), store.for_code("USD"))
        eth_usd = CurrencyPair(store.for_code("ETH"), store.for_code("USD"))
        cache = ResponseCache("tickers")

        cache.put("btc", fetched_at=100.0, key=btc_usd)
        cache.put("eth", fetched_at=150.0, key=eth_usd)

        assert cache.lookup_fresh(DESCRIPTOR, 170.0, key=btc_usd) is None
        assert cache.lookup_fresh(DESCRIPTOR, 170.0, key=eth_usd).payload == "eth"
        assert btc_usd in cache
        assert len(cache) == 2

    def test_invalidate_and_clear(self):
        cache = ResponseCache("test")
        cache.put("a", fetched_at=1.0, key="a")
        cache.put("b", fetched_at=1.0, key="b")

        cache.invalidate("a")
        assert "a" not in cache
        assert "b" in cache

        cache.clear()
        assert len(cache) == 0

    def test_items_is_snapshot(self):
        cache = ResponseCache("test")
        cache.put("a", fetched_at=1.0, key="a")

        items = cache.items()
        cache.put("b", fetched_at=1.0, key="b")

        assert [k for k, _ in items] == ["a"]

    def test_concurrent_writers(self):
        """Concurrent puts from threads all land."""
        cache = ResponseCache("test")

        def writer(n):
            for i in range(50):
                cache.put(i, fetched_at=float(i), key=(n, i))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 400


class TestExchangeStore:
    """Tests for ExchangeStore."""

    def test_cache_is_created_once(self):
        store = ExchangeStore("gdax")

        assert store.cache("products") is store.cache("products")
        assert store.cache("products").name == "gdax.products"

    def test_stores_are_isolated(self):
        """Two stores never share state."""
        first = ExchangeStore("gdax")
        second = ExchangeStore("gdax")
        first.cache("products").put(["p"], fetched_at=1.0)

        assert second.cache("products").payload() is None

    def test_clear_and_stats(self):
        store = ExchangeStore("gdax")
        store.cache("products").put(["p"], fetched_at=1.0)
        store.cache("accounts").put(["a"], fetched_at=1.0)

        assert store.get_stats()["products"]["entries"] == 1

        store.clear()

        assert store.cache("products").payload() is None
        assert store.get_stats()["accounts"]["entries"] == 0
