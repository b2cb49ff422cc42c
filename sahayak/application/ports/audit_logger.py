from typing import Optional, Dict, Any, Protocol


class AuditLogger(Protocol):
    """Security trail for OTP sends, verifications and registrations.

    Implementations must not persist the raw phone number or any OTP code.
    """

    def log(self, action: str, phone: str, artisan_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        ...
