from functools import lru_cache
import logging

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from ..application.otp.codes import SecretHasher
from ..application.otp.phone import mask_mobile
from ..application.ports.audit_logger import AuditLogger
from ..application.ports.otp_provider import OTPProvider
from ..application.services.auth_service import MobileAuthService
from ..application.services.otp_service import OTPService, OTPPolicy
from ..config import settings
from ..database import get_session
from ..exceptions import NotAuthenticated, UserNotFound, create_success_response
from ..infrastructure.audit.std_logger import StdAuditLogger
from ..infrastructure.otp.factory import build_otp_provider
from ..infrastructure.persistence.sqlalchemy.repositories.otp_repository_sql import SqlOTPRepository
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from ..infrastructure.rate_limit.factory import build_rate_limiter
from ..schemas.auth.otp import (
    SendOTPRequest,
    SendOTPResponse,
    VerificationStatusResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from ..schemas.common import ErrorResponse
from ..utils import create_jwt_token, decode_jwt_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/mobile", tags=["Mobile Authentication"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    410: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


# ------------------------
# Dependencies (provider and hasher are built once per process)
# ------------------------
@lru_cache()
def get_otp_provider() -> OTPProvider:
    return build_otp_provider(settings)


@lru_cache()
def get_secret_hasher() -> SecretHasher:
    return SecretHasher(settings.otp_hash_key)


@lru_cache()
def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


def get_otp_service(
    session: Session = Depends(get_session),
    provider: OTPProvider = Depends(get_otp_provider),
    hasher: SecretHasher = Depends(get_secret_hasher),
    audit: AuditLogger = Depends(get_audit_logger),
) -> OTPService:
    return OTPService(
        repo=SqlOTPRepository(session),
        rate_limiter=build_rate_limiter(settings, session),
        provider=provider,
        hasher=hasher,
        policy=OTPPolicy.from_settings(settings),
        audit=audit,
    )


def get_auth_service(
    otp_service: OTPService = Depends(get_otp_service),
    session: Session = Depends(get_session),
) -> MobileAuthService:
    return MobileAuthService(otp_service=otp_service, user_repo=SqlUserRepository(session))


# ------------------------
# Endpoints
# ------------------------
@router.post("/send-otp", response_model=SendOTPResponse, responses=ERROR_RESPONSES)
async def send_otp(payload: SendOTPRequest, auth_service: MobileAuthService = Depends(get_auth_service)):
    result = await auth_service.request_otp(payload.mobile, payload.purpose)
    logger.info(f"OTP sent to {mask_mobile(result.mobile)} (purpose: {payload.purpose.value}, cost: {result.cost})")
    return create_success_response({
        "otp_id": result.otp_id,
        "expires_at": result.expires_at,
        "message": f"OTP sent to {mask_mobile(result.mobile)}",
        "cost": result.cost,
    })


@router.post("/verify-otp", response_model=VerifyOTPResponse, responses=ERROR_RESPONSES)
def verify_otp(payload: VerifyOTPRequest, auth_service: MobileAuthService = Depends(get_auth_service)):
    outcome = auth_service.confirm_otp(payload.otp_id, payload.otp_code, payload.purpose)

    # Session hand-off: the only place a verified code turns into a bearer token
    access_token = create_jwt_token({"sub": outcome.user_id, "mobile": outcome.mobile})

    return create_success_response({
        "user_id": outcome.user_id,
        "mobile": outcome.mobile,
        "is_new_user": outcome.is_new_user,
        "access_token": access_token,
        "token_type": "bearer",
        "message": "Mobile verification successful",
    })


def get_current_user_id(request: Request) -> str:
    """Resolve the caller from the bearer token issued by verify-otp"""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
    else:
        # Fallback to cookie
        token = request.cookies.get("access_token")
    if not token:
        raise NotAuthenticated("Not authenticated")

    payload = decode_jwt_token(token)
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        raise NotAuthenticated()
    return payload["sub"]


@router.get("/verify-otp", response_model=VerificationStatusResponse, responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}})
def verification_status(user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    user = SqlUserRepository(session).get_by_id(user_id)
    if user is None:
        raise UserNotFound()
    return create_success_response({
        "user_id": user.id,
        "mobile": user.phone,
        "is_verified": user.is_verified,
    })
