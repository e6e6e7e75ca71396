"""
TTL cache shared by every source adapter.

Values must be JSON-serializable. Both backends store the JSON text so a value
read back from memory is indistinguishable from one read back from Redis.
Backend failures are logged and treated as cache misses.
"""

import asyncio
import fnmatch
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any]]


class CacheStore:
    """
    Base cache with the ``get_or_set`` entry point.

    Concurrent ``get_or_set`` calls for the same key share one producer run.
    The producer is shielded from caller cancellation so an abandoned search
    still populates the cache for the next one.
    """

    backend = "abstract"

    def __init__(self):
        self._inflight: dict[str, asyncio.Future] = {}
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Any:
        raise NotImplementedError

    async def set(self, key: str, value: Any, ttl: int) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def delete_pattern(self, pattern: str) -> int:
        raise NotImplementedError

    async def close(self) -> None:
        pass

    async def get_or_set(self, key: str, ttl: int, producer: Producer) -> Any:
        """
        Return the cached value for ``key`` or compute, store and return it.

        A producer returning None is not stored. A producer raising is not
        stored either and the exception reaches the caller.
        """
        cached = await self.get(key)
        if cached is not None:
            self.hits += 1
            logger.debug("Cache hit: %s", key)
            return cached

        self.misses += 1
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._produce(key, ttl, producer))
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._finish(key, t))
        return await asyncio.shield(task)

    async def _produce(self, key: str, ttl: int, producer: Producer) -> Any:
        value = await producer()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    def _finish(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the exception so an abandoned task does not warn at shutdown
        if not task.cancelled():
            task.exception()

    def stats(self) -> dict:
        return {"backend": self.backend, "hits": self.hits, "misses": self.misses}


class MemoryCacheStore(CacheStore):
    """In-process cache, used when no shared store is configured."""

    backend = "memory"

    def __init__(self, max_entries: int = 1000, clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.max_entries = max_entries
        self._clock = clock
        self._data: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Any:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if expires_at <= self._clock():
            del self._data[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("Cache value for %s is not JSON-serializable: %s", key, e)
            return
        self._data[key] = (self._clock() + ttl, payload)
        if len(self._data) > self.max_entries:
            self._evict_expired()

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_pattern(self, pattern: str) -> int:
        keys = [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]
        for key in keys:
            del self._data[key]
        logger.info("Cache: deleted %d keys matching %s", len(keys), pattern)
        return len(keys)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._data.items() if expires_at <= now]
        for key in expired:
            del self._data[key]
        logger.debug("Cache cleanup: %d expired entries removed", len(expired))

    def __len__(self) -> int:
        return len(self._data)


class RedisCacheStore(CacheStore):
    """
    Redis-backed cache shared between processes.

    The first connection failure switches the store to an in-memory fallback
    for the rest of the process lifetime.
    """

    backend = "redis"

    def __init__(self, url: str, client=None):
        super().__init__()
        if client is None:
            import redis.asyncio as aioredis

            client = aioredis.from_url(url, decode_responses=True)
        self.url = url
        self._client = client
        self._fallback: Optional[MemoryCacheStore] = None

    @property
    def degraded(self) -> bool:
        return self._fallback is not None

    def _degrade(self, operation: str, error: Exception) -> MemoryCacheStore:
        if self._fallback is None:
            logger.error(
                "Redis %s failed (%s); falling back to in-memory cache", operation, error
            )
            self._fallback = MemoryCacheStore()
        return self._fallback

    async def get(self, key: str) -> Any:
        if self._fallback is not None:
            return await self._fallback.get(key)
        try:
            payload = await self._client.get(key)
        except Exception as e:
            return await self._degrade("get", e).get(key)
        return json.loads(payload) if payload is not None else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        if self._fallback is not None:
            return await self._fallback.set(key, value, ttl)
        try:
            await self._client.set(key, json.dumps(value), ex=int(ttl))
        except (TypeError, ValueError) as e:
            logger.error("Cache value for %s is not JSON-serializable: %s", key, e)
        except Exception as e:
            await self._degrade("set", e).set(key, value, ttl)

    async def delete(self, key: str) -> None:
        if self._fallback is not None:
            return await self._fallback.delete(key)
        try:
            await self._client.delete(key)
        except Exception as e:
            await self._degrade("delete", e).delete(key)

    async def delete_pattern(self, pattern: str) -> int:
        if self._fallback is not None:
            return await self._fallback.delete_pattern(pattern)
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern)]
            if keys:
                await self._client.delete(*keys)
        except Exception as e:
            return await self._degrade("delete_pattern", e).delete_pattern(pattern)
        logger.info("Cache: deleted %d keys matching %s", len(keys), pattern)
        return len(keys)

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except Exception as e:
            logger.debug("Error closing Redis client: %s", e)

    def stats(self) -> dict:
        stats = super().stats()
        stats["degraded"] = self.degraded
        return stats


def create_cache_store(backend: str = "memory", redis_url: str = "") -> CacheStore:
    """
    Build the process-wide cache.

    Redis is used only when selected and a URL is configured; otherwise the
    in-memory store is returned.
    """
    if backend == "redis" and redis_url:
        logger.info("Cache backend: redis (%s)", redis_url)
        return RedisCacheStore(redis_url)
    logger.info("Cache backend: memory")
    return MemoryCacheStore()
