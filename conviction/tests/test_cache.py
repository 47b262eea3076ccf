"""
Cache Tests

Get-or-compute behavior of the shared cache:
- Concurrent callers share one upstream computation
- TTL expiry
- Failed computations are never stored
- Pattern invalidation and LRU eviction
"""

import asyncio
import re

import pytest

from conviction.core.cache import Cache, MemoryStore, ttl_to_seconds
from conviction.core.exceptions import ProviderError
from conviction.tests.conftest import FakeClock


class TestGetOrCompute:

    def test_concurrent_callers_share_one_computation(self, cache):
        calls = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.01)
            return 42

        async def run():
            return await asyncio.gather(*(cache.get("price:solana:SOL", compute) for _ in range(10)))

        results = asyncio.run(run())

        assert results == [42] * 10
        assert len(calls) == 1, "Concurrent misses must trigger exactly one upstream call"
        assert cache.get_stats()["in_flight"] == 0

    def test_hit_skips_compute(self, cache):
        calls = []

        async def compute():
            calls.append(1)
            return "value"

        async def run():
            first = await cache.get("k", compute)
            second = await cache.get("k", compute)
            return first, second

        assert asyncio.run(run()) == ("value", "value")
        assert len(calls) == 1

    def test_none_is_a_cacheable_answer(self, cache):
        calls = []

        async def compute():
            calls.append(1)
            return None

        async def run():
            await cache.get("k", compute)
            return await cache.get("k", compute)

        assert asyncio.run(run()) is None
        assert len(calls) == 1
        assert cache.has("k")

    def test_expired_entry_is_recomputed(self, cache, clock):
        values = iter([1, 2])

        async def compute():
            return next(values)

        async def run():
            first = await cache.get("k", compute, ttl_seconds=60)
            clock.advance(59)
            still_cached = await cache.get("k", compute, ttl_seconds=60)
            clock.advance(1)
            recomputed = await cache.get("k", compute, ttl_seconds=60)
            return first, still_cached, recomputed

        assert asyncio.run(run()) == (1, 1, 2)

    def test_failure_is_not_cached(self, cache):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ProviderError("birdeye", "HTTP 500", status=500)
            return 7

        async def run():
            with pytest.raises(ProviderError):
                await cache.get("k", flaky)
            assert not cache.has("k")
            return await cache.get("k", flaky)

        assert asyncio.run(run()) == 7
        assert len(attempts) == 2

    def test_failure_reaches_every_waiter(self, cache):
        calls = []

        async def failing():
            calls.append(1)
            await asyncio.sleep(0.01)
            raise ProviderError("dexscreener", "timed out")

        async def run():
            return await asyncio.gather(*(cache.get("k", failing) for _ in range(3)),
                                        return_exceptions=True)

        results = asyncio.run(run())
        assert len(calls) == 1
        assert all(isinstance(r, ProviderError) for r in results)
        assert not cache.has("k")


class TestWritesAndInvalidation:

    def test_set_then_peek(self, cache):
        cache.set("k", {"a": 1}, ttl_seconds=10)
        entry = cache.peek("k")
        assert entry is not None
        assert entry.value == {"a": 1}

    def test_peek_drops_expired_entry(self, cache, clock):
        cache.set("k", 1, ttl_seconds=10)
        clock.advance(10)
        assert cache.peek("k") is None
        assert cache.get_stats()["total"] == 0

    def test_invalidate(self, cache):
        cache.set("k", 1)
        assert cache.invalidate("k") is True
        assert cache.invalidate("k") is False

    def test_invalidate_pattern_uses_search(self, cache):
        cache.set("price:solana:AAA", 1)
        cache.set("price:base:BBB", 2)
        cache.set("metadata:solana:AAA", 3)

        removed = cache.invalidate_pattern(r"solana:AAA")

        assert removed == 2
        assert cache.has("price:base:BBB")
        assert not cache.has("price:solana:AAA")

    def test_invalidate_pattern_accepts_compiled_regex(self, cache):
        cache.set("trust:0xabc:", 1)
        cache.set("trust:0xabcd:", 2)
        assert cache.invalidate_pattern(re.compile(r"^trust:0xabc:")) == 1

    def test_clear_expired(self, cache, clock):
        cache.set("short", 1, ttl_seconds=5)
        cache.set("long", 2, ttl_seconds=500)
        clock.advance(10)
        assert cache.clear_expired() == 1
        assert cache.has("long")

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert cache.get_stats()["total"] == 0

    def test_stats(self, cache, clock):
        cache.set("a", 1, ttl_seconds=5)
        cache.set("b", 2, ttl_seconds=500)
        clock.advance(10)
        stats = cache.get_stats()
        assert stats["total"] == 2
        assert stats["valid"] == 1
        assert stats["expired"] == 1
        assert stats["max_size"] == 500


class TestMemoryStore:

    def test_lru_eviction(self):
        clock = FakeClock()
        cache = Cache(store=MemoryStore(max_size=2), clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.peek("a")  # touch a, so b is least recently used
        cache.set("c", 3)

        assert cache.has("a")
        assert not cache.has("b")
        assert cache.has("c")

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            MemoryStore(max_size=0)


class TestMetricsAccounting:

    def test_hits_misses_and_dedup_are_counted(self, clock, metrics):
        cache = Cache(metrics=metrics, clock=clock)

        async def compute():
            await asyncio.sleep(0.01)
            return 1

        async def run():
            await asyncio.gather(cache.get("k", compute), cache.get("k", compute))
            await cache.get("k", compute)

        asyncio.run(run())

        def count(outcome):
            return metrics.registry.get_sample_value(
                "conviction_cache_requests_total", {"outcome": outcome}
            )

        assert count("miss") == 1
        assert count("dedup") == 1
        assert count("hit") == 1


def test_ttl_to_seconds():
    assert ttl_to_seconds(0.2) == 1
    assert ttl_to_seconds(-5) == 1
    assert ttl_to_seconds(59.1) == 60
