import logging
from functools import lru_cache

from sqlmodel import Session

from ...config import Settings
from ...application.ports.rate_limiter import RateLimiter
from .memory_rate_limiter import InMemoryRateLimiter
from .sql_rate_limiter import SqlRateLimiter

logger = logging.getLogger(__name__)


@lru_cache()
def _redis_limiter(url: str, max_requests: int, window_seconds: int) -> RateLimiter:
    from .redis_rate_limiter import RedisRateLimiter

    logger.info("Redis OTP rate limiter initialized")
    return RedisRateLimiter(url=url, max_requests=max_requests, window_seconds=window_seconds)


@lru_cache()
def _memory_limiter(max_requests: int, window_seconds: int) -> RateLimiter:
    logger.warning("Using in-memory OTP rate limiting; counts are not shared between instances")
    return InMemoryRateLimiter(max_requests=max_requests, window_seconds=window_seconds)


def build_rate_limiter(settings: Settings, session: Session) -> RateLimiter:
    """Pick the backend named by ``OTP_RATE_LIMIT_BACKEND``."""
    backend = (settings.OTP_RATE_LIMIT_BACKEND or "database").strip().lower()
    max_requests = settings.OTP_RATE_LIMIT_MAX_ATTEMPTS
    window_seconds = settings.rate_limit_window_seconds

    if backend == "redis":
        if not settings.REDIS_URL:
            raise RuntimeError("OTP_RATE_LIMIT_BACKEND=redis requires REDIS_URL")
        return _redis_limiter(settings.REDIS_URL, max_requests, window_seconds)
    if backend == "memory":
        return _memory_limiter(max_requests, window_seconds)
    return SqlRateLimiter(session, max_requests=max_requests, window_seconds=window_seconds)
