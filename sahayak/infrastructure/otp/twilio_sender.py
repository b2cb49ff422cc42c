import logging
from typing import Optional

from twilio.rest import Client
from twilio.http.http_client import TwilioHttpClient
from twilio.base.exceptions import TwilioException

from ...application.ports.otp_sender import OTPSender, DeliveryError

logger = logging.getLogger(__name__)


class TwilioSMSSender(OTPSender):
    def __init__(self, account_sid: str, auth_token: str, from_number: str, country_code: str = "+91",
                 expiry_minutes: int = 5, timeout: int = 15, client: Optional[Client] = None):
        self.client = client or Client(
            account_sid,
            auth_token,
            http_client=TwilioHttpClient(timeout=timeout, max_retries=2),
        )
        self.from_number = from_number
        self.country_code = country_code
        self.expiry_minutes = expiry_minutes

    def send(self, phone: str, code: str, purpose: str) -> None:
        if not self.from_number:
            raise DeliveryError("Twilio sender number not configured")
        body = f"Your Scheme Sahayak OTP is: {code}. Valid for {self.expiry_minutes} minutes."
        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=f"{self.country_code}{phone}")
        except TwilioException as e:
            logger.error(f"Twilio delivery failed: {e}")
            raise DeliveryError(str(e))
        logger.info(f"OTP SMS queued ({purpose}): {message.sid}")
