import hashlib
import json
import logging
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger
from ...utils import utcnow

# never written to the audit trail even if a caller passes them along
_SECRET_KEYS = {"otp", "code", "token", "refresh_token"}


def hash_phone(phone: str) -> str:
    return hashlib.sha256(phone.encode()).hexdigest()


class StdAuditLogger(AuditLogger):
    def __init__(self, logger_name: str = "sahayak.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, action: str, phone: str, artisan_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": utcnow().isoformat(),
            "action": action,
            "phone_hash": hash_phone(phone),
            "artisan_id": artisan_id,
            "success": success,
            "details": {k: v for k, v in (details or {}).items() if k not in _SECRET_KEYS},
        }
        level = logging.INFO if success else logging.WARNING
        self._logger.log(level, f"AUDIT: {json.dumps(entry, default=str)}")
