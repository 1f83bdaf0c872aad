# mobile_otp/schemas/auth/otp.py
__all__ = [
    "SendOTPRequest", "SendOTPData", "SendOTPResponse",
    "VerifyOTPRequest", "VerifyOTPData", "VerifyOTPResponse",
    "VerificationStatusData", "VerificationStatusResponse",
]
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from ...application.ports.otp_repo import OTPPurpose

class SendOTPRequest(BaseModel):
    mobile: str = Field(..., min_length=1, max_length=32, description="Mobile number, with or without country code")
    purpose: OTPPurpose = Field(OTPPurpose.LOGIN, description="Use-case the code is bound to")

class SendOTPData(BaseModel):
    otp_id: str
    expires_at: datetime
    message: str
    cost: Optional[float] = None

class SendOTPResponse(BaseModel):
    success: bool = True
    data: SendOTPData
    error: Optional[str] = None

class VerifyOTPRequest(BaseModel):
    otp_id: str = Field(..., min_length=1, max_length=64)
    otp_code: str = Field(..., min_length=1, max_length=10)
    purpose: OTPPurpose = OTPPurpose.LOGIN

    @field_validator('otp_code')
    @classmethod
    def validate_otp_code(cls, v):
        v = v.strip()
        if not v.isdigit():
            raise ValueError('OTP must contain digits only')
        return v

class VerifyOTPData(BaseModel):
    user_id: str
    mobile: str
    is_new_user: bool = False
    access_token: str
    token_type: str = "bearer"
    message: str

class VerifyOTPResponse(BaseModel):
    success: bool = True
    data: VerifyOTPData
    error: Optional[str] = None

class VerificationStatusData(BaseModel):
    user_id: str
    mobile: str
    is_verified: bool

class VerificationStatusResponse(BaseModel):
    success: bool = True
    data: VerificationStatusData
    error: Optional[str] = None
