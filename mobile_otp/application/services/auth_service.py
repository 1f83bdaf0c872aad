from typing import Optional, Union
from dataclasses import dataclass
import logging

from ..otp.phone import normalize_mobile, mask_mobile
from ..ports.otp_repo import OTPPurpose
from ..ports.user_repo import UserDto, UserRepository
from .otp_service import OTPService, IssueResult, VerifyResult, coerce_purpose
from ...exceptions import AccountDisabled, AlreadyRegistered, InvalidPurpose, RegistrationRequired

logger = logging.getLogger(__name__)

# Purposes that sign an existing account in once the code is confirmed
ACCOUNT_PURPOSES = (OTPPurpose.LOGIN, OTPPurpose.MOBILE_VERIFICATION)


@dataclass
class AuthOutcome:
    user_id: str
    mobile: str
    purpose: OTPPurpose
    is_new_user: bool = False


@dataclass
class MobileAuthService:
    """Ties OTP issue/verify to the account a mobile number belongs to.

    REGISTRATION needs a number with no account, LOGIN and MOBILE_VERIFICATION
    need an active one. PASSWORD_RESET codes are not accepted here: a verified
    code from this flow always ends in a session for the account.
    """

    otp_service: OTPService
    user_repo: UserRepository

    @staticmethod
    def _ensure_active(user: UserDto) -> None:
        if not user.is_active:
            logger.warning(f"OTP flow refused for disabled user {user.id}")
            raise AccountDisabled()

    async def request_otp(self, mobile: str, purpose: Union[str, OTPPurpose]) -> IssueResult:
        purpose = coerce_purpose(purpose)
        canonical = normalize_mobile(mobile, self.otp_service.policy.default_country_code)
        user = self.user_repo.get_by_phone(canonical)

        if purpose == OTPPurpose.LOGIN and not user:
            raise RegistrationRequired()
        if purpose == OTPPurpose.REGISTRATION and user:
            raise AlreadyRegistered()
        if purpose == OTPPurpose.PASSWORD_RESET or (purpose == OTPPurpose.MOBILE_VERIFICATION and not user):
            raise InvalidPurpose()
        if user:
            self._ensure_active(user)

        return await self.otp_service.issue(canonical, purpose, user.id if user else None)

    def confirm_otp(self, otp_id: str, code: str, purpose: Union[str, OTPPurpose]) -> AuthOutcome:
        result = self.otp_service.verify(otp_id, code, purpose)

        if result.purpose == OTPPurpose.REGISTRATION and not result.user_id:
            return self._complete_registration(result)

        if result.purpose in ACCOUNT_PURPOSES and result.user_id:
            user = self.user_repo.get_by_id(result.user_id)
            if user is None:
                raise InvalidPurpose()
            self._ensure_active(user)
            self.user_repo.mark_verified(user.id)
            return AuthOutcome(user_id=user.id, mobile=result.mobile, purpose=result.purpose)

        logger.warning(f"OTP {result.otp_id} verified for {result.purpose.value} but cannot start a session ({mask_mobile(result.mobile)})")
        raise InvalidPurpose()

    def _complete_registration(self, result: VerifyResult) -> AuthOutcome:
        # Another registration for the same number may have completed meanwhile
        existing = self.user_repo.get_by_phone(result.mobile)
        if existing:
            self._ensure_active(existing)
            self.user_repo.mark_verified(existing.id)
            return AuthOutcome(user_id=existing.id, mobile=result.mobile, purpose=result.purpose)

        user = self.user_repo.create(result.mobile, is_verified=True)
        logger.info(f"New user {user.id} created via mobile registration ({mask_mobile(result.mobile)})")
        return AuthOutcome(user_id=user.id, mobile=result.mobile, purpose=result.purpose, is_new_user=True)
