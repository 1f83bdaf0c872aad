import math
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class APIException(HTTPException):
    code: str = "API_ERROR"

    def __init__(self, status_code: int, detail: str, extra: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.extra = extra or {}


# ------------------------
# OTP error taxonomy
# ------------------------
class OTPError(APIException):
    """Base class for every failure the OTP flow reports to its caller."""

    code = "OTP_ERROR"
    status_code_default = 400
    message = "OTP request failed"

    def __init__(self, detail: Optional[str] = None, extra: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(self.status_code_default, detail or self.message, extra=extra, headers=headers)


class InvalidFormat(OTPError):
    code = "INVALID_FORMAT"
    message = "Mobile number must be between 10-15 digits"


class RateLimited(OTPError):
    code = "RATE_LIMITED"
    status_code_default = 429

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        minutes = max(1, math.ceil(retry_after_seconds / 60))
        super().__init__(
            f"Too many OTP requests. Try again in {minutes} minutes.",
            extra={"retry_after_seconds": retry_after_seconds},
            headers={"Retry-After": str(retry_after_seconds)},
        )


class DeliveryFailed(OTPError):
    code = "DELIVERY_FAILED"
    status_code_default = 502

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to send OTP: {reason}")


class InvalidRequest(OTPError):
    code = "INVALID_REQUEST"
    message = "Invalid OTP request"


class AlreadyUsed(OTPError):
    code = "ALREADY_USED"
    status_code_default = 409
    message = "OTP already used. Please request a new code."


class Expired(OTPError):
    code = "EXPIRED"
    status_code_default = 410
    message = "OTP expired. Please request a new code."


class MaxAttemptsExceeded(OTPError):
    code = "MAX_ATTEMPTS_EXCEEDED"
    status_code_default = 403
    message = "Too many incorrect attempts. Please request a new code."


class InvalidOtp(OTPError):
    code = "INVALID_OTP"

    def __init__(self, attempts_remaining: int):
        self.attempts_remaining = attempts_remaining
        super().__init__(
            f"Invalid OTP. {attempts_remaining} attempt(s) remaining.",
            extra={"attempts_remaining": attempts_remaining},
        )


class RegistrationRequired(OTPError):
    code = "REGISTRATION_REQUIRED"
    status_code_default = 404
    message = "Mobile number not registered. Please sign up first."


class AlreadyRegistered(OTPError):
    code = "LOGIN_REQUIRED"
    status_code_default = 409
    message = "Mobile number already registered. Please login instead."


class InvalidPurpose(OTPError):
    code = "INVALID_PURPOSE"
    message = "Invalid purpose or user state"


class AccountDisabled(OTPError):
    code = "ACCOUNT_DISABLED"
    status_code_default = 403
    message = "This account has been disabled"


# ------------------------
# Bearer token errors
# ------------------------
class NotAuthenticated(APIException):
    code = "NOT_AUTHENTICATED"

    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(401, detail, headers={"WWW-Authenticate": "Bearer"})


class UserNotFound(APIException):
    code = "USER_NOT_FOUND"

    def __init__(self):
        super().__init__(404, "User not found")


def create_error_response(error_message: str, status_code: int = 400, code: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": data or None,
        "error": error_message,
        "code": code,
    }

def create_success_response(data: dict) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", 401)
        )

    code = getattr(exc, "code", None)
    extra = getattr(exc, "extra", None)
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code, code=code, data=extra),
        headers=getattr(exc, "headers", None),
    )
