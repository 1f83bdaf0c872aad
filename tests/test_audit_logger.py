import json
import logging

from mobile_otp.application.ports.audit_logger import AuditEvent
from mobile_otp.infrastructure.audit.std_logger import StdAuditLogger


def _entries(caplog):
    return [json.loads(r.getMessage()[len("AUDIT: "):]) for r in caplog.records if r.name == "mobile_otp.audit"]


def test_audit_line_hides_raw_number(caplog):
    caplog.set_level(logging.INFO, logger="mobile_otp.audit")
    StdAuditLogger().record(AuditEvent(
        action="otp_issue",
        mobile="+919876543210",
        success=True,
        otp_id="otp-1",
        purpose="LOGIN",
        details={"provider": "mock"},
    ))

    (entry,) = _entries(caplog)
    assert entry["action"] == "otp_issue"
    assert entry["otp_id"] == "otp-1"
    assert entry["mobile"] == "*********3210"
    assert len(entry["phone_hash"]) == 64
    assert entry["details"] == {"provider": "mock"}
    assert "9876543210" not in caplog.text


def test_failed_events_log_at_warning(caplog):
    caplog.set_level(logging.INFO, logger="mobile_otp.audit")
    StdAuditLogger().record(AuditEvent(action="otp_verify", mobile="+919876543210", success=False, reason="invalid_code"))

    (record,) = [r for r in caplog.records if r.name == "mobile_otp.audit"]
    assert record.levelno == logging.WARNING
    assert _entries(caplog)[0]["reason"] == "invalid_code"
