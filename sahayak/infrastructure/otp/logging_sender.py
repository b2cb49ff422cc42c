import hashlib
import logging

from ...application.ports.otp_sender import OTPSender


class LoggingOTPSender(OTPSender):
    """Development sender: records that a code went out without delivering it."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def send(self, phone: str, code: str, purpose: str) -> None:
        phone_hash = hashlib.sha256(phone.encode()).hexdigest()[:12]
        self._logger.info(f"OTP for {purpose} generated for phone {phone_hash} (SMS delivery disabled)")
