import math
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, func
from sqlmodel import Session, select

from ...application.ports.rate_limiter import RateLimiter, RateLimitDecision
from ...db.models import OTPIssueAttempt
from ...utils import utcnow


class SqlRateLimiter(RateLimiter):
    """Sliding window backed by the ``otp_issue_attempts`` table.

    Read-count-then-insert is not linearizable; concurrent requests for one
    number may be admitted slightly over the limit, never under-counted.
    """

    def __init__(self, session: Session, max_requests: int, window_seconds: int, clock: Callable[[], datetime] = utcnow) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.session = session
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    def check_and_record(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window_start = now - timedelta(seconds=self.window_seconds)
        count, oldest = self.session.exec(
            select(func.count(OTPIssueAttempt.id), func.min(OTPIssueAttempt.created_at))
            .where(OTPIssueAttempt.mobile == key)
            .where(OTPIssueAttempt.created_at > window_start)
        ).one()
        if count >= self.max_requests and oldest is not None:
            remaining = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return RateLimitDecision(allowed=False, retry_after_seconds=max(1, math.ceil(remaining)))

        self.session.add(OTPIssueAttempt(mobile=key, created_at=now))
        self.session.commit()
        return RateLimitDecision(allowed=True)

    def purge(self) -> int:
        window_start = self._clock() - timedelta(seconds=self.window_seconds)
        result = self.session.exec(delete(OTPIssueAttempt).where(OTPIssueAttempt.created_at <= window_start))
        self.session.commit()
        return result.rowcount or 0
