# mobile_otp/db/models/users/user.py
from typing import Optional
from sqlalchemy import Column
from sqlmodel import SQLModel, Field
from datetime import datetime
from ...types import UTCDateTime
from ....utils import utcnow
import uuid

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: Optional[str] = Field(max_length=100, default=None)
    phone: str = Field(max_length=20, unique=True, index=True)
    is_verified: bool = Field(default=False)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
