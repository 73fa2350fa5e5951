"""Redis 客户端封装：限流计数与健康检查共用一个连接池"""
from __future__ import annotations

import asyncio
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class RedisCache:
    """带命名空间的 Redis 访问入口，多进程共享同一份计数。"""

    def __init__(self, client: aioredis.Redis, namespace: str = "") -> None:
        self._client = client
        self._namespace = namespace.strip(":")

    def _format_key(self, key: str) -> str:
        return f"{self._namespace}:{key}" if self._namespace else key

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Fixed-window counter: INCR, and set the TTL on the first hit only.

        Returns ``(count, seconds_until_reset)``.
        """
        formatted_key = self._format_key(key)
        count = await self._client.incr(formatted_key)
        if count == 1:
            await self._client.expire(formatted_key, window_seconds)
            return count, window_seconds
        ttl = await self._client.ttl(formatted_key)
        if ttl is None or ttl < 0:
            # Key lost its TTL (e.g. expire failed after incr); re-arm it
            await self._client.expire(formatted_key, window_seconds)
            ttl = window_seconds
        return count, int(ttl)

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as exc:
            logger.warning("redis_ping_failed", error=str(exc))
            return False


_redis_client: Optional[aioredis.Redis] = None
_cache_instance: Optional[RedisCache] = None
_lock = asyncio.Lock()


async def init_redis_cache(namespace: Optional[str] = None) -> RedisCache:
    """初始化全局 Redis 实例（幂等）"""
    global _redis_client, _cache_instance

    if _cache_instance is not None:
        return _cache_instance

    async with _lock:
        if _cache_instance is not None:
            return _cache_instance

        if not settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化Redis")

        _redis_client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
        )
        _cache_instance = RedisCache(client=_redis_client, namespace=namespace or settings.redis.namespace)
        logger.info("redis_initialized", namespace=namespace or settings.redis.namespace)
        return _cache_instance


def get_redis_cache() -> Optional[RedisCache]:
    """未初始化时返回 None，调用方据此降级（例如关闭限流）"""
    return _cache_instance


async def shutdown_redis_cache() -> None:
    global _redis_client, _cache_instance

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        _cache_instance = None
