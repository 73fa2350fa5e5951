"""
Fixed-window rate limiter backed by Redis.

The counter lives in Redis so every API process shares one budget per
client. Key layout: ``ratelimit:{scope}:{client}:{window_start}``.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from redis.exceptions import RedisError

from core.logging_config import get_logger
from infrastructure.cache.redis_cache import RedisCache


logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int


class FixedWindowRateLimiter:

    def __init__(
        self,
        cache: Optional[RedisCache],
        *,
        scope: str,
        max_requests: int,
        window_seconds: int,
    ) -> None:
        self._cache = cache
        self._scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    def _key(self, client_id: str, now: float) -> str:
        window = int(now // self.window_seconds)
        return f"ratelimit:{self._scope}:{client_id}:{window}"

    async def hit(self, client_id: str, now: Optional[float] = None) -> RateLimitDecision:
        """Count one request for ``client_id``. Fails open when Redis errors."""
        if self._cache is None:
            return RateLimitDecision(True, 0, self.max_requests, 0)

        now = time.time() if now is None else now
        try:
            count, ttl = await self._cache.incr_window(self._key(client_id, now), self.window_seconds)
        except (RedisError, OSError) as exc:
            logger.warning("rate_limit_backend_error", scope=self._scope, error=str(exc))
            return RateLimitDecision(True, 0, self.max_requests, 0)

        allowed = count <= self.max_requests
        if not allowed:
            logger.info(
                "rate_limit_exceeded",
                scope=self._scope,
                client=client_id,
                count=count,
                limit=self.max_requests,
            )
        return RateLimitDecision(allowed, count, self.max_requests, max(ttl, 1) if not allowed else 0)
