from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol


class OTPPurpose(str, Enum):
    REGISTRATION = "REGISTRATION"
    LOGIN = "LOGIN"
    PASSWORD_RESET = "PASSWORD_RESET"
    MOBILE_VERIFICATION = "MOBILE_VERIFICATION"


@dataclass
class OTPRecordDto:
    id: str
    user_id: Optional[str]
    mobile: str
    secret_hash: str
    purpose: OTPPurpose
    created_at: datetime
    expires_at: datetime
    attempts: int
    max_attempts: int
    verified_at: Optional[datetime] = None
    provider: Optional[str] = None
    provider_message_id: Optional[str] = None
    cost: Optional[float] = None


class OTPRepository(Protocol):
    def create(self, record: OTPRecordDto) -> OTPRecordDto:
        ...

    def get(self, otp_id: str) -> Optional[OTPRecordDto]:
        ...

    def record_failed_attempt(self, otp_id: str, expected_attempts: int, now: datetime) -> bool:
        """Increment attempts only if they still equal ``expected_attempts`` and the record is unverified and unexpired at ``now``."""
        ...

    def mark_verified(self, otp_id: str, expected_attempts: int, verified_at: datetime) -> bool:
        """Set verified_at only if it is still null, attempts still equal ``expected_attempts`` and the record has not expired by ``verified_at``."""
        ...

    def delete_expired(self, now: datetime) -> int:
        ...
