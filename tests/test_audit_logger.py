import json
import logging

from sahayak.infrastructure.audit.std_logger import StdAuditLogger, hash_phone


def test_audit_entry_hashes_phone_and_drops_secrets(caplog):
    caplog.set_level(logging.INFO, logger="sahayak.audit")
    StdAuditLogger().log("otp_verify", "9876543210", artisan_id="a1", details={"attempts": 1, "otp": "482913"})

    record = caplog.records[-1]
    entry = json.loads(record.getMessage()[len("AUDIT: "):])
    assert entry["phone_hash"] == hash_phone("9876543210")
    assert entry["artisan_id"] == "a1"
    assert entry["details"] == {"attempts": 1}
    assert "9876543210" not in record.getMessage()
    assert "482913" not in record.getMessage()


def test_failed_actions_log_as_warning(caplog):
    caplog.set_level(logging.INFO, logger="sahayak.audit")
    StdAuditLogger().log("otp_send", "9876543210", success=False, details={"reason": "rate_limited"})
    assert caplog.records[-1].levelno == logging.WARNING

