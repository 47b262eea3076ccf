"""
Redis Cache Store with In-Memory Fallback

Backs the Cache with Redis so several worker processes share provider
results. If Redis is unavailable, the store degrades to an in-memory LRU
instead of failing the request.
"""

import logging
import pickle
import time
from typing import List, Optional

import redis

from .cache import MemoryStore, ttl_to_seconds
from .models import CacheEntry

logger = logging.getLogger(__name__)


class RedisStore:
    """
    Cache entry store on Redis with an in-memory fallback.

    Entries are pickled and written with SETEX so Redis expires them on its
    own; the Cache still checks expires_at on read.

    Calls are synchronous network round trips, so the store reports itself
    as blocking while Redis is enabled and the Cache runs them in a worker
    thread.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0",
                 fallback: Optional[MemoryStore] = None,
                 prefix: str = "conviction:cache:",
                 client=None):
        """
        Initialize Redis store.

        Args:
            redis_url: Redis connection URL
            fallback: Store used when Redis is unreachable
            prefix: Namespace prepended to every key
            client: Pre-built redis client (tests)
        """
        self.redis_url = redis_url
        self.prefix = prefix
        self.fallback = fallback if fallback is not None else MemoryStore()
        self.max_size = self.fallback.max_size
        self.enabled = False
        self.redis_client = client

        if self.redis_client is None:
            try:
                self.redis_client = redis.Redis.from_url(
                    self.redis_url,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                # Test connection
                self.redis_client.ping()
                logger.info("Redis cache store initialized successfully")
                self.enabled = True
            except redis.RedisError as e:
                logger.warning(f"Failed to connect to Redis: {e}. Using in-memory cache.")
                self.redis_client = None
        else:
            self.enabled = True

    @property
    def blocking(self) -> bool:
        return self.enabled

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[CacheEntry]:
        if self.enabled:
            try:
                raw = self.redis_client.get(self._key(key))
                if raw is None:
                    return None
                return pickle.loads(raw)
            except (redis.RedisError, pickle.UnpicklingError) as e:
                logger.debug(f"Redis get failed for key {key}: {e}, using fallback")

        return self.fallback.get(key)

    def set(self, entry: CacheEntry):
        if self.enabled:
            try:
                ttl = ttl_to_seconds(entry.expires_at - time.time())
                self.redis_client.setex(self._key(entry.key), ttl, pickle.dumps(entry))
                return
            except redis.RedisError as e:
                logger.debug(f"Redis set failed for key {entry.key}: {e}, using fallback")

        self.fallback.set(entry)

    def delete(self, key: str) -> bool:
        removed = self.fallback.delete(key)
        if self.enabled:
            try:
                return bool(self.redis_client.delete(self._key(key))) or removed
            except redis.RedisError as e:
                logger.debug(f"Redis delete failed for key {key}: {e}")
        return removed

    def keys(self) -> List[str]:
        keys = set(self.fallback.keys())
        if self.enabled:
            try:
                for raw in self.redis_client.scan_iter(match=f"{self.prefix}*"):
                    name = raw.decode() if isinstance(raw, bytes) else raw
                    keys.add(name[len(self.prefix):])
            except redis.RedisError as e:
                logger.debug(f"Redis scan failed: {e}")
        return sorted(keys)

    def clear(self):
        """Remove every entry under this store's prefix."""
        self.fallback.clear()
        if self.enabled:
            try:
                for raw in self.redis_client.scan_iter(match=f"{self.prefix}*"):
                    self.redis_client.delete(raw)
            except redis.RedisError as e:
                logger.debug(f"Redis clear failed: {e}")

    def is_available(self) -> bool:
        """Check if Redis is available and working."""
        if not self.enabled:
            return False
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False

    def __len__(self) -> int:
        return len(self.keys())
