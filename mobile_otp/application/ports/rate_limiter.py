from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: Optional[int] = None


class RateLimiter(Protocol):
    def check_and_record(self, key: str) -> RateLimitDecision:
        ...

    def purge(self) -> int:
        ...
