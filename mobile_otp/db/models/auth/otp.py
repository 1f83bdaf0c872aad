# mobile_otp/db/models/auth/otp.py
from sqlalchemy import Column
from sqlmodel import SQLModel, Field
from datetime import datetime
from ...types import UTCDateTime
from ....utils import utcnow
from typing import Optional
import uuid

class OTPRecord(SQLModel, table=True):
    __tablename__ = "otp_records"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=36)
    user_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    mobile: str = Field(max_length=20, index=True)
    secret_hash: str = Field(max_length=64)
    purpose: str = Field(max_length=32)
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=3)
    verified_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    provider: Optional[str] = Field(default=None, max_length=32)
    provider_message_id: Optional[str] = Field(default=None, max_length=128)
    cost: Optional[float] = Field(default=None)
    expires_at: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False, index=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False, index=True))

class OTPIssueAttempt(SQLModel, table=True):
    __tablename__ = "otp_issue_attempts"
    id: Optional[int] = Field(default=None, primary_key=True)
    mobile: str = Field(max_length=20, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False, index=True))
