import hashlib
import json
import logging
from dataclasses import asdict

from ...application.otp.phone import mask_mobile
from ...application.ports.audit_logger import AuditLogger, AuditEvent
from ...utils import utcnow


class StdAuditLogger(AuditLogger):
    """Writes one JSON line per OTP event; the raw number is replaced by a hash and a mask."""

    def __init__(self, logger_name: str = "mobile_otp.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def record(self, event: AuditEvent) -> None:
        entry = asdict(event)
        mobile = entry.pop("mobile")
        entry["timestamp"] = utcnow().isoformat()
        entry["mobile"] = mask_mobile(mobile) if mobile else None
        entry["phone_hash"] = hashlib.sha256(mobile.encode()).hexdigest() if mobile else None
        level = logging.INFO if event.success else logging.WARNING
        self._logger.log(level, f"AUDIT: {json.dumps(entry, default=str, sort_keys=True)}")
