"""
Issue and verify one-time codes sent to mobile numbers.

Issue:  normalize -> rate limit -> generate + hash -> deliver -> persist.
Verify: load -> purpose -> already used -> expired -> attempts -> compare.

The service keeps no state between calls. Every mutation of an OTP record is
a conditional update in the repository; when one loses a race the record is
reloaded and the checks run again against the fresh state.
"""
import asyncio
import hmac
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from ..otp.codes import SecretHasher, generate_code
from ..otp.phone import mask_mobile, normalize_mobile
from ..ports.audit_logger import AuditEvent, AuditLogger
from ..ports.otp_provider import OTPProvider, DeliveryResult
from ..ports.otp_repo import OTPPurpose, OTPRecordDto, OTPRepository
from ..ports.rate_limiter import RateLimiter
from ...config import Settings
from ...exceptions import (
    AlreadyUsed,
    DeliveryFailed,
    Expired,
    InvalidOtp,
    InvalidRequest,
    MaxAttemptsExceeded,
    RateLimited,
)
from ...utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class OTPPolicy:
    code_length: int = 6
    expiry_minutes: int = 10
    max_attempts: int = 3
    default_country_code: str = "91"
    provider_timeout_seconds: float = 5.0
    # None disables the master code entirely
    master_code: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "OTPPolicy":
        return cls(
            code_length=settings.OTP_CODE_LENGTH,
            expiry_minutes=settings.OTP_EXPIRY_MINUTES,
            max_attempts=settings.OTP_MAX_RETRIES,
            default_country_code=settings.OTP_DEFAULT_COUNTRY_CODE,
            provider_timeout_seconds=settings.OTP_PROVIDER_TIMEOUT_SECONDS,
            master_code=settings.OTP_MASTER_CODE if settings.master_code_active else None,
        )


@dataclass
class IssueResult:
    otp_id: str
    expires_at: datetime
    mobile: str
    cost: Optional[float] = None


@dataclass
class VerifyResult:
    otp_id: str
    user_id: Optional[str]
    mobile: str
    purpose: OTPPurpose
    used_master_code: bool = False


def coerce_purpose(purpose: Union[str, OTPPurpose]) -> OTPPurpose:
    try:
        return OTPPurpose(purpose)
    except ValueError:
        raise InvalidRequest(f"Unknown OTP purpose: {purpose}") from None


@dataclass
class OTPService:
    repo: OTPRepository
    rate_limiter: RateLimiter
    provider: OTPProvider
    hasher: SecretHasher
    policy: OTPPolicy = field(default_factory=OTPPolicy)
    audit: Optional[AuditLogger] = None
    clock: Callable[[], datetime] = utcnow
    code_generator: Callable[[int], str] = generate_code

    @property
    def provider_name(self) -> str:
        return getattr(self.provider, "name", type(self.provider).__name__)

    def _audit(self, action: str, mobile: str, success: bool, user_id: Optional[str] = None,
               otp_id: Optional[str] = None, purpose: Optional[str] = None, reason: Optional[str] = None, **details) -> None:
        if self.audit is None:
            return
        self.audit.record(AuditEvent(
            action=action,
            mobile=mobile,
            success=success,
            otp_id=otp_id,
            user_id=user_id,
            purpose=purpose,
            reason=reason,
            details=details,
        ))

    # ------------------------
    # Issue
    # ------------------------
    async def issue(self, mobile: str, purpose: Union[str, OTPPurpose], user_id: Optional[str] = None) -> IssueResult:
        purpose = coerce_purpose(purpose)
        canonical = normalize_mobile(mobile, self.policy.default_country_code)

        decision = self.rate_limiter.check_and_record(canonical)
        if not decision.allowed:
            retry_after = decision.retry_after_seconds or 1
            logger.warning(f"OTP rate limit exceeded for {mask_mobile(canonical)} (purpose: {purpose.value}), retry in {retry_after}s")
            self._audit("otp_issue", canonical, False, user_id, purpose=purpose.value, reason="rate_limited", retry_after_seconds=retry_after)
            raise RateLimited(retry_after)

        otp_id = str(uuid.uuid4())
        code = self.code_generator(self.policy.code_length)
        secret_hash = self.hasher.hash(code, otp_id)
        created_at = self.clock()
        expires_at = created_at + timedelta(minutes=self.policy.expiry_minutes)

        delivery = await self._deliver(canonical, code, purpose, user_id)

        record = self.repo.create(OTPRecordDto(
            id=otp_id,
            user_id=user_id,
            mobile=canonical,
            secret_hash=secret_hash,
            purpose=purpose,
            created_at=created_at,
            expires_at=expires_at,
            attempts=0,
            max_attempts=self.policy.max_attempts,
            provider=self.provider_name,
            provider_message_id=delivery.message_id,
            cost=delivery.cost,
        ))
        logger.info(f"OTP {record.id} issued to {mask_mobile(canonical)} (purpose: {purpose.value}, provider: {self.provider_name})")
        self._audit("otp_issue", canonical, True, user_id, otp_id=record.id, purpose=purpose.value, provider=self.provider_name, cost=delivery.cost)
        return IssueResult(otp_id=record.id, expires_at=record.expires_at, mobile=canonical, cost=delivery.cost)

    async def _deliver(self, mobile: str, code: str, purpose: OTPPurpose, user_id: Optional[str]) -> DeliveryResult:
        context = f"{mask_mobile(mobile)} (purpose: {purpose.value}, provider: {self.provider_name})"
        try:
            result = await asyncio.wait_for(
                self.provider.send(mobile, code, purpose.value),
                timeout=self.policy.provider_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"OTP delivery timed out after {self.policy.provider_timeout_seconds}s for {context}")
            self._audit("otp_issue", mobile, False, user_id, purpose=purpose.value, provider=self.provider_name, reason="timeout")
            raise DeliveryFailed("delivery provider timed out")
        except Exception as e:
            logger.exception(f"OTP delivery raised for {context}")
            self._audit("otp_issue", mobile, False, user_id, purpose=purpose.value, provider=self.provider_name, reason="provider_error")
            raise DeliveryFailed(str(e) or e.__class__.__name__) from e

        if not result.success:
            reason = result.error or "Failed to send OTP"
            logger.error(f"OTP delivery failed for {context}: {reason}")
            self._audit("otp_issue", mobile, False, user_id, purpose=purpose.value, provider=self.provider_name, reason=reason)
            raise DeliveryFailed(reason)
        return result

    # ------------------------
    # Verify
    # ------------------------
    def _is_master_code(self, code: str) -> bool:
        master = self.policy.master_code
        if not master or not code:
            return False
        return hmac.compare_digest(code.encode(), master.encode())

    def verify(self, otp_id: str, code: str, purpose: Union[str, OTPPurpose]) -> VerifyResult:
        purpose = coerce_purpose(purpose)
        code = (code or "").strip()

        while True:
            record = self.repo.get(otp_id) if otp_id else None
            if record is None:
                raise InvalidRequest()
            if record.purpose != purpose:
                logger.warning(f"OTP {record.id} presented for {purpose.value} but issued for {record.purpose.value}")
                self._audit("otp_verify", record.mobile, False, record.user_id, otp_id=record.id, reason="purpose_mismatch")
                raise InvalidRequest()
            if record.verified_at is not None:
                raise AlreadyUsed()
            now = self.clock()
            if now > record.expires_at:
                raise Expired()
            if record.attempts >= record.max_attempts:
                raise MaxAttemptsExceeded()

            # Writes below take a fresh clock reading; the repository refuses them once expired
            if self._is_master_code(code):
                # Accepted without consuming an attempt
                if not self.repo.mark_verified(record.id, record.attempts, self.clock()):
                    continue
                logger.warning(f"Master OTP code used for OTP {record.id} ({mask_mobile(record.mobile)})")
                self._audit("otp_verify", record.mobile, True, record.user_id, otp_id=record.id, purpose=purpose.value, master_code=True)
                return VerifyResult(record.id, record.user_id, record.mobile, purpose, used_master_code=True)

            if code and self.hasher.matches(code, record.id, record.secret_hash):
                if not self.repo.mark_verified(record.id, record.attempts, self.clock()):
                    continue
                logger.info(f"OTP {record.id} verified for {mask_mobile(record.mobile)}")
                self._audit("otp_verify", record.mobile, True, record.user_id, otp_id=record.id, purpose=purpose.value)
                return VerifyResult(record.id, record.user_id, record.mobile, purpose)

            if not self.repo.record_failed_attempt(record.id, record.attempts, self.clock()):
                continue
            remaining = max(0, record.max_attempts - (record.attempts + 1))
            self._audit("otp_verify", record.mobile, False, record.user_id, otp_id=record.id, purpose=purpose.value, reason="invalid_code", attempts_remaining=remaining)
            if remaining == 0:
                logger.warning(f"OTP {record.id} locked after {record.max_attempts} failed attempts")
                raise MaxAttemptsExceeded()
            raise InvalidOtp(remaining)

    # ------------------------
    # Maintenance
    # ------------------------
    def purge_expired(self) -> int:
        return purge_expired(self.repo, self.rate_limiter, self.clock())


def purge_expired(repo: OTPRepository, rate_limiter: RateLimiter, now: datetime) -> int:
    """Garbage-collect records past expiry; not part of the verification path."""
    removed = repo.delete_expired(now)
    stale = rate_limiter.purge()
    logger.info(f"Purged {removed} expired OTP records and {stale} stale rate limit entries")
    return removed
