"""
Redis Cache Module

Shared cache for serialized report payloads with:
- Connection pooling
- Automatic JSON serialization
- TTL management
- Namespace invalidation

Report keys embed the snapshot fingerprint, so a changed snapshot never
reads stale payloads. When Redis is not initialized every lookup is a miss
and writes are skipped.
"""

import json
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from olist_kpis.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )
    client = Redis(connection_pool=pool)

    try:
        await client.ping()
    except RedisError as e:
        logger.error("Redis connection failed", host=settings.redis.host, error=str(e))
        await pool.disconnect()
        raise

    logger.info("Redis connection established", db=settings.redis.db)
    _redis_pool, _redis_client = pool, client
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def redis_available() -> bool:
    return _redis_client is not None


class CacheManager:
    """
    Namespaced JSON cache for report payloads.

    Degrades to a pass-through when Redis is unavailable: reads miss,
    writes are skipped and read/write errors are logged, not raised.

    Example:
        cache = CacheManager("reports")
        payload = await cache.get_or_set(f"{fingerprint}:monthly_kpis", compute)
    """

    def __init__(self, namespace: str, default_ttl: int = 3600):
        self.namespace = namespace
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Cached value, or None on a miss"""
        if not redis_available():
            return None
        try:
            raw = await get_redis().get(self._key(key))
        except RedisError as e:
            logger.warning("Cache read failed", key=key, error=str(e))
            return None
        return None if raw is None else json.loads(raw)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[Union[int, timedelta]] = None,
    ) -> bool:
        """Store `value` as JSON; dates and decimals are written as text"""
        if not redis_available():
            return False

        ttl = ttl or self.default_ttl
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())

        try:
            await get_redis().setex(self._key(key), ttl, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning("Cache write failed", key=key, error=str(e))
            return False
        return True

    async def invalidate_all(self) -> int:
        """Delete every key of the namespace"""
        if not redis_available():
            return 0

        client = get_redis()
        keys = [key async for key in client.scan_iter(match=f"{self.namespace}:*")]
        if not keys:
            return 0
        removed = await client.delete(*keys)
        logger.info("Cache namespace invalidated", namespace=self.namespace, keys=removed)
        return removed

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Get from cache or compute and cache.

        Args:
            key: Cache key within the namespace
            factory: Async function computing the value on a miss
            ttl: Time-to-live in seconds, defaults to the namespace TTL

        Returns:
            Cached or computed value
        """
        value = await self.get(key)
        if value is not None:
            return value

        value = await factory()
        await self.set(key, value, ttl)
        return value


reports_cache = CacheManager("reports", default_ttl=get_settings().redis.cache_ttl_seconds)
