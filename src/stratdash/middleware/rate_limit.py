"""Login rate limiting: sliding window per source address.

Learn: Brute-force protection for POST /api/admin/login. Each client IP
gets `limit` attempts per `window_seconds` (5 per 15 minutes by
default). The next attempt is answered with 429 by the middleware,
before the request ever reaches the credential check, so it doesn't
matter whether the password would have been right.

The counting lives behind the RateLimiter interface and is injected
via app.state.login_limiter:
- InMemoryRateLimiter: a dict of timestamp deques. Fine for ONE process.
- RedisRateLimiter: a sorted set per IP in Redis, shared by every
  instance behind the load balancer.

If Redis is unreachable the login goes through (fail open) and a
warning is logged; locking every operator out is worse.
"""

import asyncio
import math
import time
import uuid
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Callable

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

LOGIN_PATH = "/api/admin/login"
TOO_MANY_ATTEMPTS = "Too many login attempts, please try again later"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0  # seconds until the oldest counted attempt ages out


class RateLimiter(ABC):
    """Counts attempts per key inside a sliding time window."""

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds

    @abstractmethod
    async def hit(self, key: str) -> RateLimitDecision:
        """Record one attempt for `key` unless it is already over the limit."""

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Forget every attempt recorded for `key`."""

    async def close(self) -> None:
        pass


class InMemoryRateLimiter(RateLimiter):
    """Process-local sliding window. Rejected attempts are not counted."""

    SWEEP_EVERY = 1000

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(limit, window_seconds)
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()
        self._calls = 0

    def _evict(self, attempts: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            self._evict(self._hits[key], now)
            if not self._hits[key]:
                del self._hits[key]

    async def hit(self, key: str) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            self._calls += 1
            if self._calls % self.SWEEP_EVERY == 0:
                self._sweep(now)

            attempts = self._hits.setdefault(key, deque())
            self._evict(attempts, now)
            if len(attempts) >= self.limit:
                retry_after = math.ceil(attempts[0] + self.window_seconds - now)
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after=max(retry_after, 1),
                )
            attempts.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=self.limit - len(attempts),
            )

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._hits.pop(key, None)


class RedisRateLimiter(RateLimiter):
    """Sliding window shared across processes via Redis sorted sets.

    Learn: One sorted set per key, scored by attempt time. Each hit runs
    in a single MULTI: drop entries older than the window, add this
    attempt, count, refresh the TTL. If the count went over the limit
    the attempt is removed again, so rejected attempts don't count.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        limit: int,
        window_seconds: int,
        prefix: str = "stratdash:rl:login",
    ):
        super().__init__(limit, window_seconds)
        self.redis = redis
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def hit(self, key: str) -> RateLimitDecision:
        rkey = self._key(key)
        now = time.time()
        member = f"{now}:{uuid.uuid4().hex}"

        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(rkey, 0, now - self.window_seconds)
            pipe.zadd(rkey, {member: now})
            pipe.zcard(rkey)
            pipe.expire(rkey, self.window_seconds)
            _, _, count, _ = await pipe.execute()

        if count > self.limit:
            await self.redis.zrem(rkey, member)
            oldest = await self.redis.zrange(rkey, 0, 0, withscores=True)
            retry_after = self.window_seconds
            if oldest:
                retry_after = math.ceil(oldest[0][1] + self.window_seconds - now)
            return RateLimitDecision(
                allowed=False,
                limit=self.limit,
                remaining=0,
                retry_after=max(retry_after, 1),
            )
        return RateLimitDecision(
            allowed=True, limit=self.limit, remaining=self.limit - count
        )

    async def reset(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def close(self) -> None:
        await self.redis.aclose()


def build_rate_limiter(settings) -> RateLimiter:
    """Pick the login limiter backend from configuration."""
    if settings.rate_limit_backend == "redis":
        client = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        return RedisRateLimiter(
            client,
            limit=settings.login_rate_limit_attempts,
            window_seconds=settings.login_rate_limit_window_seconds,
        )
    return InMemoryRateLimiter(
        limit=settings.login_rate_limit_attempts,
        window_seconds=settings.login_rate_limit_window_seconds,
    )


class LoginRateLimitMiddleware(BaseHTTPMiddleware):
    """Reject login attempts past the per-IP limit with 429."""

    def __init__(self, app, path: str = LOGIN_PATH):
        super().__init__(app)
        self.path = path

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method != "POST" or request.url.path.rstrip("/") != self.path:
            return await call_next(request)

        limiter: RateLimiter = request.app.state.login_limiter
        client_ip = request.client.host if request.client else "unknown"

        try:
            decision = await limiter.hit(client_ip)
        except (RedisError, OSError) as e:
            logger.warning("auth.rate_limiter_unavailable", error=str(e))
            return await call_next(request)

        if not decision.allowed:
            logger.warning("auth.login_rate_limited", client_ip=client_ip)
            return JSONResponse(
                status_code=429,
                content={"detail": TOO_MANY_ATTEMPTS},
                headers={"Retry-After": str(decision.retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
