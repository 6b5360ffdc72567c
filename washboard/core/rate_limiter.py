import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import NamedTuple
from uuid import uuid4

import redis

from washboard.core.config import settings

logger = logging.getLogger("washboard.rate_limiter")


class RateLimitDecision(NamedTuple):
    allowed: bool
    retry_after: int = 0


ALLOW = RateLimitDecision(allowed=True)


def _retry_after(oldest_hit: float, window_seconds: int, now: float) -> int:
    return max(1, math.ceil(oldest_hit + window_seconds - now))


class RateLimiter(ABC):
    """Sliding-window limiter keyed by caller, e.g. ``login:<ip>``."""

    @abstractmethod
    def allow(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        now = time.time()
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()
            if len(hits) >= limit:
                return RateLimitDecision(False, _retry_after(hits[0], window_seconds, now))
            hits.append(now)
        return ALLOW

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class RedisRateLimiter(RateLimiter):
    """Counts hits in a sorted set per key.

    The hit is recorded and counted in one MULTI block, so concurrent workers
    never both slip under the limit; a rejected hit is removed again.
    """

    def __init__(self, redis_url: str, prefix: str = "washboard:rl") -> None:
        self._client = redis.Redis.from_url(
            redis_url,
            socket_connect_timeout=0.2,
            socket_timeout=0.2,
        )
        self._prefix = prefix

    def allow(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        redis_key = f"{self._prefix}:{key}"
        now = time.time()
        member = f"{now}:{uuid4().hex}"

        with self._client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, 0, now - window_seconds)
            pipe.zadd(redis_key, {member: now})
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            pipe.expire(redis_key, window_seconds + 5)
            _, _, hit_count, oldest, _ = pipe.execute()

        if hit_count <= limit:
            return ALLOW

        self._client.zrem(redis_key, member)
        oldest_hit = oldest[0][1] if oldest else now
        return RateLimitDecision(False, _retry_after(oldest_hit, window_seconds, now))

    def reset(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}:*"))
        if keys:
            self._client.delete(*keys)


class FailOpenRateLimiter(RateLimiter):
    """Tries each limiter in turn; permits the request when none can answer."""

    def __init__(self, *limiters: RateLimiter) -> None:
        self._limiters = limiters

    def allow(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        for limiter in self._limiters:
            try:
                return limiter.allow(key=key, limit=limit, window_seconds=window_seconds)
            except Exception:
                logger.warning("rate_limiter_unavailable limiter=%s", limiter.__class__.__name__)
        return ALLOW

    def reset(self) -> None:
        for limiter in self._limiters:
            try:
                limiter.reset()
            except Exception:
                logger.warning("rate_limiter_reset_failed limiter=%s", limiter.__class__.__name__)


def _build_rate_limiter() -> RateLimiter:
    if settings.rate_limit_backend.strip().lower() == "redis":
        return FailOpenRateLimiter(RedisRateLimiter(settings.rate_limit_redis_url), InMemoryRateLimiter())
    return InMemoryRateLimiter()


rate_limiter: RateLimiter = _build_rate_limiter()
