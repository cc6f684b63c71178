import pytest

from rate_limiter import InMemoryRateLimiter, RateLimitError, UsageTracker
from response_cache import ResponseCache


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_window_allows_up_to_limit():
    clock = Clock()
    limiter = InMemoryRateLimiter(window_seconds=60, max_requests=2, clock=clock)

    first = limiter.check("ip")
    second = limiter.check("ip")
    third = limiter.check("ip")

    assert first.allowed and first.remaining == 1
    assert second.allowed and second.remaining == 0
    assert not third.allowed
    assert third.retry_after == 60
    assert third.headers()["Retry-After"] == "60"


def test_keys_are_independent_and_window_resets():
    clock = Clock()
    limiter = InMemoryRateLimiter(window_seconds=60, max_requests=1, clock=clock)
    limiter.check("a")
    assert limiter.check("b").allowed
    assert not limiter.check("a").allowed

    clock.now += 61
    assert limiter.check("a").allowed


def test_enforce_raises_with_result():
    limiter = InMemoryRateLimiter(window_seconds=60, max_requests=0, clock=Clock())
    with pytest.raises(RateLimitError) as exc:
        limiter.enforce("x")
    assert exc.value.result.limit == 0


def test_reset():
    limiter = InMemoryRateLimiter(window_seconds=60, max_requests=1, clock=Clock())
    limiter.check("a")
    limiter.reset("a")
    assert limiter.check("a").allowed


def test_usage_stats():
    clock = Clock()
    usage = UsageTracker(max_entries=3, clock=clock)
    usage.record_request(success=True, response_time=100, credits_used=1)
    usage.record_request(success=False, rate_limited=True)
    clock.now += 10
    usage.record_request(success=True, response_time=300, credits_used=0.5)

    stats = usage.get_stats()
    assert stats["totalRequests"] == 3
    assert stats["successfulRequests"] == 2
    assert stats["rateLimitHits"] == 1
    assert stats["creditsUsed"] == 1.5
    assert stats["averageResponseTime"] == 200

    assert usage.get_stats(since=1005)["totalRequests"] == 1

    usage.record_request(success=True)
    assert len(usage.get_recent_entries()) == 3


def test_cache_ttl_and_lru():
    clock = Clock()
    cache = ResponseCache(ttl_seconds=10, max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)  # evicts b, the least recently used

    assert cache.get("b") is None
    assert cache.get("a") == 1

    clock.now += 11
    assert cache.get("a") is None
    assert cache.stats()["hits"] == 2


def test_cache_invalidate_prefix():
    cache = ResponseCache()
    cache.set("catalog:1", 1)
    cache.set("catalog:2", 2)
    cache.set("stats", 3)
    assert cache.invalidate("catalog:") == 2
    assert cache.get("stats") == 3
    assert cache.invalidate() == 1
