from typing import Protocol


class DeliveryError(Exception):
    pass


class OTPSender(Protocol):
    def send(self, phone: str, code: str, purpose: str) -> None:
        ...
