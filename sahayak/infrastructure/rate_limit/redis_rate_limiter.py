import time

import redis

from ...application.ports.rate_limiter import RateLimiter


class RedisRateLimiter(RateLimiter):
    """Fixed window counter shared by every API worker."""

    def __init__(self, url: str, prefix: str = "sahayak:rl:") -> None:
        self.client = redis.Redis.from_url(url)
        self.prefix = prefix

    def _bucket_key(self, key: str, window_seconds: int) -> str:
        # one counter per window so it resets at the boundary
        bucket = int(time.time() // window_seconds)
        return f"{self.prefix}{key}:{bucket}"

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        rk = self._bucket_key(key, window_seconds)
        pipe = self.client.pipeline()
        pipe.incr(rk, 1)
        pipe.expire(rk, window_seconds)
        count, _ = pipe.execute()
        return int(count) <= int(max_requests)
