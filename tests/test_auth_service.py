import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

import pytest

from mobile_otp.application.otp.codes import SecretHasher
from mobile_otp.application.ports.user_repo import UserRepository, UserDto
from mobile_otp.application.services.auth_service import MobileAuthService
from mobile_otp.application.services.otp_service import OTPService
from mobile_otp.exceptions import AccountDisabled, AlreadyRegistered, InvalidOtp, InvalidPurpose, RegistrationRequired
from mobile_otp.infrastructure.otp.mock_provider import MockOTPProvider
from mobile_otp.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter

from test_otp_service import FakeOTPRepo

class FakeUserRepo(UserRepository):
    def __init__(self):
        self.users = {
            "+915551234567": UserDto(
                id="user-1",
                phone="+915551234567",
                is_verified=False,
                is_active=True,
                created_at=datetime.now(timezone.utc),
                name="Alice",
            )
        }
        self.verified = set()

    def get_by_phone(self, phone: str) -> Optional[UserDto]:
        return self.users.get(phone)

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        return next((u for u in self.users.values() if u.id == user_id), None)

    def create(self, phone: str, name: Optional[str] = None, is_verified: bool = False) -> UserDto:
        user = UserDto(id=f"user-{len(self.users) + 1}", phone=phone, is_verified=is_verified,
                       is_active=True, created_at=datetime.now(timezone.utc), name=name)
        self.users[phone] = user
        return user

    def mark_verified(self, user_id: str) -> None:
        self.verified.add(user_id)

    def disable(self, phone: str) -> None:
        self.users[phone] = replace(self.users[phone], is_active=False)


def make_auth_service():
    provider = MockOTPProvider()
    otp = OTPService(
        repo=FakeOTPRepo(),
        rate_limiter=InMemoryRateLimiter(max_requests=5, window_seconds=3600),
        provider=provider,
        hasher=SecretHasher("test-key"),
    )
    return MobileAuthService(otp_service=otp, user_repo=FakeUserRepo()), provider


def test_login_otp_binds_existing_user():
    svc, provider = make_auth_service()
    issued = asyncio.run(svc.request_otp("5551234567", "LOGIN"))
    assert svc.otp_service.repo.records[issued.otp_id].user_id == "user-1"

    outcome = svc.confirm_otp(issued.otp_id, provider.last_code_for("+915551234567"), "LOGIN")
    assert outcome.user_id == "user-1"
    assert outcome.is_new_user is False
    assert "user-1" in svc.user_repo.verified


def test_login_for_unknown_number_requires_registration():
    svc, provider = make_auth_service()
    with pytest.raises(RegistrationRequired) as exc:
        asyncio.run(svc.request_otp("9998887776", "LOGIN"))
    assert exc.value.status_code == 404
    assert len(provider.outbox) == 0


def test_registration_for_known_number_is_rejected():
    svc, _ = make_auth_service()
    with pytest.raises(AlreadyRegistered) as exc:
        asyncio.run(svc.request_otp("+91 555 123 4567", "REGISTRATION"))
    assert exc.value.status_code == 409


def test_registration_creates_user_after_verification():
    svc, provider = make_auth_service()
    issued = asyncio.run(svc.request_otp("9998887776", "REGISTRATION"))
    assert "+919998887776" not in svc.user_repo.users

    outcome = svc.confirm_otp(issued.otp_id, provider.last_code_for("+919998887776"), "REGISTRATION")
    assert outcome.is_new_user is True
    assert svc.user_repo.users["+919998887776"].id == outcome.user_id
    assert svc.user_repo.users["+919998887776"].is_verified is True


def test_registration_reuses_account_created_concurrently():
    svc, provider = make_auth_service()
    issued = asyncio.run(svc.request_otp("9998887776", "REGISTRATION"))
    existing = svc.user_repo.create("+919998887776")

    outcome = svc.confirm_otp(issued.otp_id, provider.last_code_for("+919998887776"), "REGISTRATION")
    assert outcome.user_id == existing.id
    assert outcome.is_new_user is False


def test_password_reset_is_not_served_by_the_session_flow():
    svc, provider = make_auth_service()
    with pytest.raises(InvalidPurpose) as exc:
        asyncio.run(svc.request_otp("5551234567", "PASSWORD_RESET"))
    assert exc.value.status_code == 400
    assert exc.value.code == "INVALID_PURPOSE"
    assert len(provider.outbox) == 0


def test_verified_password_reset_code_never_signs_in():
    svc, provider = make_auth_service()
    issued = asyncio.run(svc.otp_service.issue("+915551234567", "PASSWORD_RESET", user_id="user-1"))
    with pytest.raises(InvalidPurpose):
        svc.confirm_otp(issued.otp_id, provider.last_code_for("+915551234567"), "PASSWORD_RESET")
    assert "user-1" not in svc.user_repo.verified


def test_mobile_verification_needs_an_account():
    svc, provider = make_auth_service()
    with pytest.raises(InvalidPurpose):
        asyncio.run(svc.request_otp("9998887776", "MOBILE_VERIFICATION"))
    assert len(provider.outbox) == 0


def test_mobile_verification_marks_account_verified():
    svc, provider = make_auth_service()
    issued = asyncio.run(svc.request_otp("5551234567", "MOBILE_VERIFICATION"))
    outcome = svc.confirm_otp(issued.otp_id, provider.last_code_for("+915551234567"), "MOBILE_VERIFICATION")
    assert outcome.user_id == "user-1"
    assert "user-1" in svc.user_repo.verified


def test_disabled_account_cannot_request_a_login_code():
    svc, provider = make_auth_service()
    svc.user_repo.disable("+915551234567")
    with pytest.raises(AccountDisabled) as exc:
        asyncio.run(svc.request_otp("5551234567", "LOGIN"))
    assert exc.value.status_code == 403
    assert len(provider.outbox) == 0


def test_account_disabled_after_issue_is_refused_on_confirm():
    svc, provider = make_auth_service()
    issued = asyncio.run(svc.request_otp("5551234567", "LOGIN"))
    svc.user_repo.disable("+915551234567")
    with pytest.raises(AccountDisabled):
        svc.confirm_otp(issued.otp_id, provider.last_code_for("+915551234567"), "LOGIN")
    assert "user-1" not in svc.user_repo.verified


def test_failed_confirmation_creates_nothing():
    svc, provider = make_auth_service()
    issued = asyncio.run(svc.request_otp("9998887776", "REGISTRATION"))
    wrong = "111111" if provider.last_code_for("+919998887776") != "111111" else "222222"
    with pytest.raises(InvalidOtp):
        svc.confirm_otp(issued.otp_id, wrong, "REGISTRATION")
    assert "+919998887776" not in svc.user_repo.users
