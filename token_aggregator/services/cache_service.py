"""
Redis-backed cache for aggregated token snapshots.

The cache is strictly best-effort: when Redis is unreachable every operation
becomes a no-op (reads return None, writes are dropped) and callers carry on
fetching fresh data.
"""

import json
import logging
import time
from typing import Any, Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..constants.cache import CACHE_RECONNECT_INTERVAL, DEFAULT_CACHE_TTL
from ..utils.errors import CacheError

logger = logging.getLogger(__name__)


class CacheService:
    """JSON key-value cache with per-key TTL."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        default_ttl: int = DEFAULT_CACHE_TTL,
        client: Optional[Redis] = None,
        reconnect_interval: float = CACHE_RECONNECT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.reconnect_interval = reconnect_interval
        self._client = client
        self._clock = clock
        self._available = False
        self._closed = False
        self._next_reconnect = 0.0

    async def open(self) -> bool:
        """Connect to Redis and verify it answers. Returns the resulting availability."""
        if self._closed:
            return False
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        try:
            await self._client.ping()
        except RedisError as e:
            logger.error(f"Redis unavailable at {self.redis_url}: {str(e)}")
            self._mark_unavailable()
            return False

        if not self._available:
            logger.info("Redis connected")
        self._available = True
        return True

    def is_available(self) -> bool:
        return self._available

    def _mark_unavailable(self) -> None:
        self._available = False
        self._next_reconnect = self._clock() + self.reconnect_interval

    async def _ensure_available(self) -> bool:
        if self._available:
            return True
        if self._client is None or self._closed:
            return False
        if self._clock() < self._next_reconnect:
            return False
        return await self.open()

    def _handle_error(self, operation: str, error: Exception) -> None:
        logger.error(f"Cache {operation} error: {str(error)}")
        if isinstance(error, (RedisConnectionError, RedisTimeoutError)):
            self._mark_unavailable()

    async def get(self, key: str) -> Optional[Any]:
        """Return the deserialized value under key, or None on miss or any cache failure."""
        if not await self._ensure_available():
            return None
        try:
            data = await self._client.get(key)
        except RedisError as e:
            self._handle_error("get", e)
            return None

        if data is None:
            return None
        try:
            return json.loads(data)
        except (TypeError, ValueError) as e:
            logger.error(f"Cache get error: {CacheError(f'cannot decode value for {key}: {e}')}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Serialize value under key, replacing any previous entry and resetting its TTL."""
        if not await self._ensure_available():
            return
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Cache set error: {CacheError(f'cannot encode value for {key}: {e}')}")
            return

        ttl = ttl_seconds or self.default_ttl
        try:
            await self._client.setex(key, ttl, payload)
        except RedisError as e:
            self._handle_error("set", e)

    async def delete(self, key: str) -> None:
        if not await self._ensure_available():
            return
        try:
            await self._client.delete(key)
        except RedisError as e:
            self._handle_error("delete", e)

    async def clear(self) -> None:
        """Drop every key in the current Redis database."""
        if not await self._ensure_available():
            return
        try:
            await self._client.flushdb()
        except RedisError as e:
            self._handle_error("clear", e)

    async def close(self) -> None:
        """Release the Redis connection. Safe to call more than once."""
        self._available = False
        self._closed = True
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.aclose()
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {str(e)}")
