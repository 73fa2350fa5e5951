import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from infrastructure.cache import FixedWindowRateLimiter


class FakeWindowCache:
    def __init__(self):
        self.counts = {}

    async def incr_window(self, key, window_seconds):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key], window_seconds


class BrokenCache:
    async def incr_window(self, key, window_seconds):
        raise RedisConnectionError("redis down")


def _limiter(cache, max_requests=3):
    return FixedWindowRateLimiter(cache, scope="payments", max_requests=max_requests, window_seconds=900)


@pytest.mark.asyncio
async def test_requests_over_the_limit_are_rejected():
    limiter = _limiter(FakeWindowCache())

    decisions = [await limiter.hit("10.0.0.1", now=1000.0) for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert decisions[-1].retry_after == 900
    assert decisions[-1].limit == 3


@pytest.mark.asyncio
async def test_clients_and_windows_are_counted_separately():
    cache = FakeWindowCache()
    limiter = _limiter(cache, max_requests=1)

    assert (await limiter.hit("10.0.0.1", now=1000.0)).allowed
    assert (await limiter.hit("10.0.0.2", now=1000.0)).allowed
    assert not (await limiter.hit("10.0.0.1", now=1001.0)).allowed
    # Next window
    assert (await limiter.hit("10.0.0.1", now=1000.0 + 900)).allowed
    assert all(key.startswith("ratelimit:payments:") for key in cache.counts)


@pytest.mark.asyncio
async def test_backend_errors_fail_open():
    limiter = _limiter(BrokenCache(), max_requests=1)
    assert (await limiter.hit("10.0.0.1")).allowed
    assert (await limiter.hit("10.0.0.1")).allowed


@pytest.mark.asyncio
async def test_disabled_without_cache():
    limiter = _limiter(None, max_requests=1)
    assert limiter.enabled is False
    assert all([(await limiter.hit("10.0.0.1")).allowed for _ in range(5)])


@pytest.mark.asyncio
async def test_route_answers_429_with_retry_after(monkeypatch):
    import httpx

    from api.dependencies import get_rate_limiter
    from main import app

    limiter = _limiter(FakeWindowCache(), max_requests=0)
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.post(
                "/api/v1/payments",
                json={"order_id": 1, "customer_session": "sess"},
                headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
            )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "900"
    assert any(key.startswith("ratelimit:payments:203.0.113.9:") for key in limiter._cache.counts)
