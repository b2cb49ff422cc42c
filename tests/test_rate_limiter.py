import pytest

from sahayak.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter


def test_memory_rate_limiter_allows_then_blocks():
    rl = InMemoryRateLimiter()
    key = "otp:9876543210:login"
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is False
    # other purposes have their own budget
    assert rl.allow("otp:9876543210:registration", max_requests=2, window_seconds=60) is True


def test_memory_rate_limiter_window_slides(monkeypatch):
    from sahayak.infrastructure.rate_limit import memory_rate_limiter as mod

    now = [1000.0]
    monkeypatch.setattr(mod.time, "time", lambda: now[0])
    rl = InMemoryRateLimiter()
    assert rl.allow("k", 1, 60) is True
    assert rl.allow("k", 1, 60) is False
    now[0] += 61
    assert rl.allow("k", 1, 60) is True


def test_redis_rate_limiter_with_fake(monkeypatch):
    pytest.importorskip("redis")

    class FakePipe:
        def __init__(self, client):
            self.client = client
            self.ops = []

        def incr(self, k, n):
            self.ops.append(("incr", k, n))
            return self

        def expire(self, k, s):
            self.ops.append(("expire", k, s))
            return self

        def execute(self):
            results = []
            for op, k, n in self.ops:
                if op == "incr":
                    self.client.store[k] = self.client.store.get(k, 0) + n
                    results.append(self.client.store[k])
                else:
                    self.client.ttls[k] = n
                    results.append(True)
            return results

    class FakeRedis:
        def __init__(self):
            self.store = {}
            self.ttls = {}

        @classmethod
        def from_url(cls, url):
            return cls()

        def pipeline(self):
            return FakePipe(self)

    from sahayak.infrastructure.rate_limit import redis_rate_limiter as mod
    monkeypatch.setattr(mod.redis, "Redis", FakeRedis)

    monkeypatch.setattr(mod.time, "time", lambda: 7300.0)

    rl = mod.RedisRateLimiter(url="redis://fake")
    assert rl.allow("otp:9876543210:login", 2, 3600) is True
    assert rl.allow("otp:9876543210:login", 2, 3600) is True
    assert rl.allow("otp:9876543210:login", 2, 3600) is False
    assert rl.client.ttls == {"sahayak:rl:otp:9876543210:login:2": 3600}
