from .auth import SendOTPRequest, VerifyOTPRequest, RegisterRequest, RefreshRequest
from .applications import SubmitApplicationRequest

__all__ = [
    "SendOTPRequest",
    "VerifyOTPRequest",
    "RegisterRequest",
    "RefreshRequest",
    "SubmitApplicationRequest",
]
