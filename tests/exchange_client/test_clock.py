"""
Cache Clock Tests.
"""

from exchange_client.cache import ResponseCache
from exchange_client.clock import MockClock, SystemClock
from exchange_client.endpoints import EndpointDescriptor


class TestMockClock:
    """Tests for MockClock."""

    def test_starts_at_fixed_epoch(self):
        assert MockClock().timestamp() == 1_514_764_800.0
        assert MockClock(start=42.0).timestamp() == 42.0

    def test_advance_in_seconds(self):
        clock = MockClock(start=1000.0)

        assert clock.advance(30) == 1030.0
        assert clock.advance(0.5) == 1030.5
        assert clock.timestamp() == 1030.5

    def test_steps_across_refetch_interval(self):
        """Freshness follows the clock: cached at +59s, stale at +61s."""
        clock = MockClock()
        cache = ResponseCache("test")
        descriptor = EndpointDescriptor(
            name="get_thing", host="https://example.test", path="/thing", refetch_interval=60.0
        )
        cache.put(["p"], fetched_at=clock.timestamp())

        clock.advance(59)
        assert cache.lookup_fresh(descriptor, clock.timestamp()) is not None

        clock.advance(2)
        assert cache.lookup_fresh(descriptor, clock.timestamp()) is None


class TestSystemClock:
    """Tests for SystemClock."""

    def test_timestamp_is_epoch_seconds(self):
        assert SystemClock().timestamp() > 1_500_000_000
