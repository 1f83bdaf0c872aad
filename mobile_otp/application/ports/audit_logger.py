from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol


@dataclass
class AuditEvent:
    # otp_issue | otp_verify
    action: str
    mobile: str
    success: bool
    otp_id: Optional[str] = None
    user_id: Optional[str] = None
    purpose: Optional[str] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class AuditLogger(Protocol):
    def record(self, event: AuditEvent) -> None:
        ...
