"""
Get-or-compute cache shared by the market data gateway and the trust resolver.

One Cache is constructed per process (see Cache.from_config) and injected into
every component that needs it. It guarantees at most one in-flight upstream
computation per key: concurrent callers for the same key await the same task.
Failed computations are never stored, so a transient outage heals on the
next call.

Stores that do network I/O (RedisStore) mark themselves `blocking`; the
async paths then run store calls in a worker thread so they never stall
the event loop.
"""

import asyncio
import logging
import math
import re
import threading
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Union

from .models import CacheEntry

logger = logging.getLogger(__name__)


class MemoryStore:
    """Thread-safe LRU store for cache entries."""

    def __init__(self, max_size: int = 500):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    def set(self, entry: CacheEntry):
        with self._lock:
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache evicted least recently used key {evicted}")

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class Cache:
    """
    Async get-or-compute cache with TTL and pattern invalidation.

    Args:
        store: Backing store (MemoryStore by default, RedisStore when shared)
        default_ttl_seconds: TTL used when get()/set() are called without one
        metrics: Optional AnalyticsMetrics for hit/miss accounting
        clock: Wall-clock function returning seconds (injectable for tests)
    """

    def __init__(self, store=None, default_ttl_seconds: float = 3600.0,
                 metrics=None, clock: Callable[[], float] = time.time):
        self.store = store if store is not None else MemoryStore()
        self.default_ttl_seconds = default_ttl_seconds
        self.metrics = metrics
        self._clock = clock
        self._in_flight: Dict[str, asyncio.Future] = {}

    @classmethod
    def from_config(cls, metrics=None) -> "Cache":
        """Build the process cache from ConvictionConfig."""
        from ..config import ConvictionConfig

        max_size = ConvictionConfig.get_cache_max_size()
        if ConvictionConfig.get_redis_enabled():
            from .redis_client import RedisStore
            store = RedisStore(ConvictionConfig.get_redis_url(), fallback=MemoryStore(max_size))
        else:
            store = MemoryStore(max_size)
        return cls(store=store,
                   default_ttl_seconds=ConvictionConfig.get_cache_default_ttl_seconds(),
                   metrics=metrics)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key without computing, dropping it if expired."""
        entry = self.store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self.store.delete(key)
            return None
        return entry

    def has(self, key: str) -> bool:
        return self.peek(key) is not None

    @property
    def blocking(self) -> bool:
        return getattr(self.store, "blocking", False)

    async def _run_store(self, fn, *args):
        if self.blocking:
            return await asyncio.to_thread(fn, *args)
        return fn(*args)

    async def apeek(self, key: str) -> Optional[CacheEntry]:
        """peek() that keeps store I/O off the event loop."""
        return await self._run_store(self.peek, key)

    async def get(self, key: str, compute: Callable[[], Awaitable[Any]],
                  ttl_seconds: Optional[float] = None) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.

        Concurrent callers for the same key share one computation. If the
        computation raises, nothing is stored and every waiter sees the error.
        """
        entry = await self.apeek(key)
        if entry is not None:
            self._record("hit")
            return entry.value

        task = self._in_flight.get(key)
        if task is None:
            self._record("miss")
            task = asyncio.ensure_future(self._compute_and_store(key, compute, ttl_seconds))
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._finish(k, t))
        else:
            self._record("dedup")
            logger.debug(f"Cache awaiting in-flight computation for {key}")

        # Shielded so an abandoned caller does not cancel the shared computation.
        return await asyncio.shield(task)

    async def _compute_and_store(self, key: str, compute: Callable[[], Awaitable[Any]],
                                 ttl_seconds: Optional[float]) -> Any:
        value = await compute()
        await self.aset(key, value, ttl_seconds)
        return value

    def _finish(self, key: str, task: asyncio.Future):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the exception retrieved; it has already been delivered to the awaiting callers.
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Cache computation for {key} failed: {task.exception()}")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None):
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.store.set(CacheEntry(key=key, value=value, expires_at=self._clock() + ttl))
        # Counting entries on a remote store means a full key scan
        if self.metrics is not None and not self.blocking:
            self.metrics.update_cache_size(len(self.store))

    async def aset(self, key: str, value: Any, ttl_seconds: Optional[float] = None):
        """set() that keeps store I/O off the event loop."""
        await self._run_store(self.set, key, value, ttl_seconds)

    def invalidate(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""
        return self.store.delete(key)

    def invalidate_pattern(self, pattern: Union[str, Pattern]) -> int:
        """
        Remove every entry whose key matches pattern (re.search semantics).

        Returns:
            Number of entries removed
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        count = 0
        for key in self.store.keys():
            if regex.search(key) and self.store.delete(key):
                count += 1
        if count:
            logger.debug(f"Cache invalidated {count} entries matching {regex.pattern}")
        return count

    def clear_expired(self) -> int:
        now = self._clock()
        count = 0
        for key in self.store.keys():
            entry = self.store.get(key)
            if entry is not None and entry.is_expired(now) and self.store.delete(key):
                count += 1
        return count

    def clear(self):
        self.store.clear()

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        now = self._clock()
        total = 0
        expired = 0
        for key in self.store.keys():
            entry = self.store.get(key)
            if entry is None:
                continue
            total += 1
            if entry.is_expired(now):
                expired += 1
        max_size = getattr(self.store, "max_size", None)
        return {
            "total": total,
            "valid": total - expired,
            "expired": expired,
            "in_flight": len(self._in_flight),
            "max_size": max_size,
            "utilization": round(total / max_size * 100, 1) if max_size else None,
        }

    def _record(self, outcome: str):
        if self.metrics is not None:
            self.metrics.record_cache(outcome)


def ttl_to_seconds(ttl: float) -> int:
    """Whole seconds for backends that only accept integer TTLs (at least 1)."""
    return max(1, int(math.ceil(ttl)))
