import logging

import pytest
from twilio.base.exceptions import TwilioException

from sahayak.application.ports.otp_sender import DeliveryError
from sahayak.infrastructure.otp.logging_sender import LoggingOTPSender
from sahayak.infrastructure.otp.twilio_sender import TwilioSMSSender


class FakeMessage:
    sid = "SM123"


class FakeMessages:
    def __init__(self, error=None):
        self.error = error
        self.created = []

    def create(self, body, from_, to):
        if self.error:
            raise self.error
        self.created.append({"body": body, "from_": from_, "to": to})
        return FakeMessage()


class FakeClient:
    def __init__(self, error=None):
        self.messages = FakeMessages(error)


def test_twilio_sender_prefixes_country_code():
    client = FakeClient()
    sender = TwilioSMSSender("AC1", "tok", "+15005550006", client=client)
    sender.send("9876543210", "482913", "login")

    sent = client.messages.created[0]
    assert sent["to"] == "+919876543210"
    assert sent["from_"] == "+15005550006"
    assert "482913" in sent["body"]
    assert "5 minutes" in sent["body"]


def test_twilio_failure_is_delivery_error():
    sender = TwilioSMSSender("AC1", "tok", "+15005550006", client=FakeClient(TwilioException("unreachable")))
    with pytest.raises(DeliveryError):
        sender.send("9876543210", "482913", "login")


def test_twilio_without_sender_number_fails():
    sender = TwilioSMSSender("AC1", "tok", "", client=FakeClient())
    with pytest.raises(DeliveryError):
        sender.send("9876543210", "482913", "login")


def test_logging_sender_never_logs_code(caplog):
    caplog.set_level(logging.INFO)
    LoggingOTPSender().send("9876543210", "482913", "login")
    assert "482913" not in caplog.text
    assert "9876543210" not in caplog.text
