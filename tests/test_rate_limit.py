"""Login rate limiter tests: both backends plus the middleware.

Learn: The in-memory limiter takes an injectable clock, so window
expiry is tested without sleeping. The Redis limiter runs against
fakeredis, which implements sorted sets and MULTI in-process.
"""

import pytest
from fakeredis import aioredis as fake_aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from stratdash.config import settings
from stratdash.main import app
from stratdash.middleware.rate_limit import (
    InMemoryRateLimiter,
    RateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


# ─── In-memory backend ────────────────────────────────────


@pytest.mark.asyncio
async def test_memory_allows_up_to_limit():
    limiter = InMemoryRateLimiter(limit=5, window_seconds=900, clock=FakeClock())
    decisions = [await limiter.hit("10.0.0.1") for _ in range(6)]
    assert [d.allowed for d in decisions] == [True] * 5 + [False]
    assert [d.remaining for d in decisions[:5]] == [4, 3, 2, 1, 0]
    assert decisions[-1].retry_after == 900


@pytest.mark.asyncio
async def test_memory_keys_are_independent():
    limiter = InMemoryRateLimiter(limit=1, window_seconds=900, clock=FakeClock())
    assert (await limiter.hit("a")).allowed
    assert not (await limiter.hit("a")).allowed
    assert (await limiter.hit("b")).allowed


@pytest.mark.asyncio
async def test_memory_window_slides():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(limit=2, window_seconds=900, clock=clock)
    await limiter.hit("ip")            # t=1000
    clock.now += 600
    await limiter.hit("ip")            # t=1600
    assert not (await limiter.hit("ip")).allowed

    clock.now = 1000 + 900             # first attempt ages out
    decision = await limiter.hit("ip")
    assert decision.allowed
    assert not (await limiter.hit("ip")).allowed


@pytest.mark.asyncio
async def test_memory_rejections_do_not_extend_lockout():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=clock)
    await limiter.hit("ip")
    for _ in range(10):
        clock.now += 5
        assert not (await limiter.hit("ip")).allowed
    clock.now = 1000 + 60
    assert (await limiter.hit("ip")).allowed


@pytest.mark.asyncio
async def test_memory_reset():
    limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    await limiter.hit("ip")
    await limiter.reset("ip")
    assert (await limiter.hit("ip")).allowed


@pytest.mark.asyncio
async def test_memory_sweep_drops_idle_keys():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(limit=5, window_seconds=60, clock=clock)
    limiter.SWEEP_EVERY = 3
    await limiter.hit("idle")
    clock.now += 120
    await limiter.hit("busy")
    await limiter.hit("busy")  # third call triggers the sweep
    assert "idle" not in limiter._hits


# ─── Redis backend ────────────────────────────────────────


@pytest.mark.asyncio
async def test_redis_sliding_window():
    redis = fake_aioredis.FakeRedis(decode_responses=True)
    limiter = RedisRateLimiter(redis, limit=5, window_seconds=900)

    decisions = [await limiter.hit("10.0.0.9") for _ in range(6)]
    assert [d.allowed for d in decisions] == [True] * 5 + [False]
    assert decisions[-1].retry_after > 0

    # Rejected attempt was not recorded
    assert await redis.zcard("stratdash:rl:login:10.0.0.9") == 5
    assert await redis.ttl("stratdash:rl:login:10.0.0.9") > 0

    await limiter.reset("10.0.0.9")
    assert (await limiter.hit("10.0.0.9")).allowed
    await limiter.close()


@pytest.mark.asyncio
async def test_redis_instances_share_counts():
    """Two app instances on one Redis see the same attempts."""
    redis = fake_aioredis.FakeRedis(decode_responses=True)
    a = RedisRateLimiter(redis, limit=3, window_seconds=900)
    b = RedisRateLimiter(redis, limit=3, window_seconds=900)
    await a.hit("ip")
    await b.hit("ip")
    await a.hit("ip")
    assert not (await b.hit("ip")).allowed


def test_build_rate_limiter_memory():
    limiter = build_rate_limiter(settings)
    assert isinstance(limiter, InMemoryRateLimiter)
    assert limiter.limit == 5
    assert limiter.window_seconds == 15 * 60


def test_build_rate_limiter_redis(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_backend", "redis")
    limiter = build_rate_limiter(settings)
    assert isinstance(limiter, RedisRateLimiter)


# ─── Middleware ───────────────────────────────────────────


class BrokenLimiter(RateLimiter):
    async def hit(self, key):
        raise RedisConnectionError("redis is down")

    async def reset(self, key):
        pass


@pytest.mark.asyncio
async def test_middleware_fails_open(client):
    app.state.login_limiter = BrokenLimiter(limit=5, window_seconds=900)
    for _ in range(7):
        r = await client.post(
            "/api/admin/login",
            json={"email": "nobody@example.com", "password": "x"},
        )
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_middleware_headers(client):
    r = await client.post(
        "/api/admin/login",
        json={"email": "nobody@example.com", "password": "x"},
    )
    assert r.headers["X-RateLimit-Limit"] == "5"
    assert r.headers["X-RateLimit-Remaining"] == "4"


@pytest.mark.asyncio
async def test_middleware_ignores_other_routes(client):
    for _ in range(10):
        r = await client.get("/api/health")
        assert r.status_code == 200
    assert "X-RateLimit-Limit" not in r.headers
