# Models package (re-export feature modules for stable imports)
from .users.user import User
from .auth.otp import OTPRecord, OTPIssueAttempt

__all__ = [
    "User",
    "OTPRecord",
    "OTPIssueAttempt",
]
