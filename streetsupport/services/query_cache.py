"""TTL cache for `/api/services` response payloads.

Two backends share one async interface so the search service does not care
which is in use: an in-process map (default) and Redis, when enabled, so
several workers can share hits.
"""
import hashlib
import json
import logging
import time
from collections import OrderedDict
from typing import Any, Dict, Optional, Protocol

from redis.asyncio import Redis

from streetsupport.core.config import settings

logger = logging.getLogger(__name__)

def generate_key(params: Dict[str, Any]) -> str:
    """Order-independent hash of the query parameters."""
    normalised = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(normalised.encode("utf-8")).hexdigest()

class QueryCache(Protocol):
    backend: str

    def generate_key(self, params: Dict[str, Any]) -> str: ...
    async def get(self, key: str) -> Optional[Dict[str, Any]]: ...
    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None: ...
    async def clear(self) -> None: ...

class InMemoryQueryCache:
    backend = "memory"

    def __init__(self, max_size: int = settings.QUERY_CACHE_MAX_SIZE, clock=time.monotonic):
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[float, Dict[str, Any]]]" = OrderedDict()

    def generate_key(self, params: Dict[str, Any]) -> str:
        return generate_key(params)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            # Oldest insert goes first
            self._entries.popitem(last=False)
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "entries": list(self._entries.keys()),
        }

class RedisQueryCache:
    """Redis-backed cache. Errors degrade to cache misses, never to failed requests."""
    backend = "redis"
    KEY_PREFIX = "services:"

    def __init__(self, url: Optional[str] = None, client: Optional[Redis] = None):
        if client is None:
            if not url:
                raise ValueError("REDIS_URL is not set in the environment")
            client = Redis.from_url(url, decode_responses=True)
        self._redis = client

    def generate_key(self, params: Dict[str, Any]) -> str:
        return self.KEY_PREFIX + generate_key(params)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self._redis.get(key)
        except Exception as e:
            logger.error(f"Redis GET error for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.error(f"Discarding unreadable cache entry {key}")
            return None

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        try:
            await self._redis.setex(key, ttl_seconds, json.dumps(value))
        except Exception as e:
            logger.error(f"Redis SETEX error for {key}: {e}")

    async def clear(self) -> None:
        try:
            async for key in self._redis.scan_iter(match=f"{self.KEY_PREFIX}*"):
                await self._redis.delete(key)
        except Exception as e:
            logger.error(f"Redis clear error: {e}")

    async def close(self) -> None:
        await self._redis.aclose()

def build_query_cache() -> QueryCache:
    """Redis when enabled and configured, otherwise the in-process map."""
    if settings.ENABLE_REDIS and settings.REDIS_URL:
        logger.info("Using Redis query cache")
        return RedisQueryCache(settings.REDIS_URL)
    return InMemoryQueryCache()
