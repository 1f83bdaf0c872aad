import redis

from ...application.ports.rate_limiter import RateLimiter, RateLimitDecision


class RedisRateLimiter(RateLimiter):
    """Fixed-window counter: one INCR per attempt, key expires with the window."""

    def __init__(self, url: str, max_requests: int, window_seconds: int, prefix: str = "otp:rl:", client=None) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.client = client or redis.Redis.from_url(url, socket_timeout=2)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix

    def check_and_record(self, key: str) -> RateLimitDecision:
        rk = f"{self.prefix}{key}:{self.window_seconds}"
        # NX keeps the first attempt's expiry so the window does not slide on every hit
        pipe = self.client.pipeline()
        pipe.incr(rk, 1)
        pipe.expire(rk, self.window_seconds, nx=True)
        pipe.ttl(rk)
        count, _, ttl = pipe.execute()
        if int(count) <= int(self.max_requests):
            return RateLimitDecision(allowed=True)
        retry_after = int(ttl) if ttl and int(ttl) > 0 else self.window_seconds
        return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

    def purge(self) -> int:
        # Keys expire on their own
        return 0
