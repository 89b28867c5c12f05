"""Durable key-value cache with TTL - Redis or in-memory fallback."""
import json
import time
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class DurableCache:
    """
    Key-value cache with time-to-live support.

    Uses Redis when a URL is configured and reachable, else an in-process
    store. Values are stored as JSON text in both backends, so a read never
    hands back an object shared with the writer. An expired read behaves as
    a miss.
    """

    def __init__(self, redis_url: Optional[str] = None, default_ttl: float = 30.0):
        self.default_ttl = default_ttl
        self.backend = "memory"
        self.redis = None
        self._redis_url = redis_url or None
        self._cache: Dict[str, tuple[str, float]] = {}
        self._last_cleanup = time.time()
        self._cleanup_interval = 60.0  # Clean up every 60 seconds

        if self._redis_url:
            try:
                from redis import asyncio as redis_asyncio
                self.redis = redis_asyncio.from_url(self._redis_url, decode_responses=True)
                self.backend = "redis"
            except Exception as e:
                logger.warning(f"Redis client could not be created, using in-memory cache: {e}")
        else:
            logger.info("Using in-memory durable cache (Redis URL not provided)")

    async def connect(self) -> str:
        """Verify the Redis connection, falling back to memory when it is unreachable."""
        if self.backend != "redis":
            return self.backend
        try:
            await self.redis.ping()
            logger.info("Using Redis for durable cache")
        except Exception as e:
            logger.warning(f"Redis not available, using in-memory durable cache: {e}")
            self.backend = "memory"
            self.redis = None
        return self.backend

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()

    def _cleanup_expired(self):
        """Remove expired entries from the in-memory store."""
        current_time = time.time()
        if current_time - self._last_cleanup < self._cleanup_interval:
            return

        expired_keys = [key for key, (_, expires_at) in self._cache.items() if current_time > expires_at]
        for key in expired_keys:
            self._cache.pop(key, None)

        self._last_cleanup = current_time

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache if present and not expired."""
        if self.backend == "redis":
            try:
                raw = await self.redis.get(key)
            except Exception as e:
                logger.error(f"Error getting cache key {key!r} from Redis: {e}")
                return None
        else:
            self._cleanup_expired()
            entry = self._cache.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if time.time() > expires_at:
                logger.debug(f"Cache expired for key {key!r}, removing")
                self._cache.pop(key, None)
                return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Discarding unreadable cache entry for key {key!r}: {e}")
            await self.remove(key)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set value in cache with TTL in seconds. Raises when the value cannot be stored."""
        if ttl is None:
            ttl = self.default_ttl

        raw = json.dumps(value)
        if self.backend == "redis":
            await self.redis.set(key, raw, ex=max(1, int(ttl)))
        else:
            self._cache[key] = (raw, time.time() + ttl)

    async def remove(self, key: str) -> None:
        """Remove key from cache."""
        if self.backend == "redis":
            try:
                await self.redis.delete(key)
            except Exception as e:
                logger.error(f"Error removing cache key {key!r} from Redis: {e}")
        else:
            self._cache.pop(key, None)

    async def checkpoint(self, key: str) -> Optional[tuple[str, Optional[float]]]:
        """Raw stored text and expiry time for ``key``, or None when it is absent."""
        if self.backend == "redis":
            try:
                raw = await self.redis.get(key)
                ttl_ms = await self.redis.pttl(key)
            except Exception as e:
                logger.error(f"Error reading cache key {key!r} from Redis: {e}")
                return None
            if raw is None:
                return None
            return raw, (time.time() + ttl_ms / 1000 if ttl_ms > 0 else None)

        entry = self._cache.get(key)
        if entry is None or time.time() > entry[1]:
            return None
        return entry

    async def restore(self, key: str, entry: Optional[tuple[str, Optional[float]]]) -> None:
        """Put back exactly what :meth:`checkpoint` returned, removing the key if it was absent."""
        if entry is None:
            await self.remove(key)
            return

        raw, expires_at = entry
        if expires_at is not None and time.time() >= expires_at:
            await self.remove(key)
            return

        if self.backend == "redis":
            if expires_at is None:
                await self.redis.set(key, raw)
            else:
                await self.redis.set(key, raw, px=max(1, int((expires_at - time.time()) * 1000)))
        else:
            self._cache[key] = (raw, expires_at)

    async def clear(self) -> None:
        """Clear all in-memory cache entries."""
        self._cache.clear()
