# sahayak/schemas/auth.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

# Fields stay optional so the OTP service can report its own error codes


class SendOTPRequest(BaseModel):
    phone: Optional[str] = Field(None, description="10-digit mobile number")
    purpose: Optional[str] = Field("login", description="login, registration or password_reset")


class VerifyOTPRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    otp: Optional[str] = None


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    name: Optional[str] = Field(None, max_length=100)
    preferred_language: Optional[str] = Field(None, alias="preferredLanguage", max_length=10)
    district: Optional[str] = Field(None, max_length=100)


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(None, alias="refreshToken")
