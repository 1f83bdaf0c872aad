# mobile_otp/schemas/common.py
from pydantic import BaseModel
from typing import Any, Dict, Optional

__all__ = ["ErrorResponse", "HealthResponse"]

class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[Dict[str, Any]] = None
    error: str
    code: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    database: Dict[str, Any]
    otp: Dict[str, Any]
