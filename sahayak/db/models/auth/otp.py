# sahayak/db/models/auth/otp.py
from sqlmodel import SQLModel, Field
from datetime import datetime
import secrets

from ....utils import utcnow, utc_column


class OTPSessionRecord(SQLModel, table=True):
    __tablename__ = "otp_sessions"
    id: str = Field(default_factory=lambda: secrets.token_hex(32), primary_key=True)
    phone: str = Field(max_length=20, index=True)
    purpose: str = Field(max_length=20)
    code_hash: str = Field(max_length=64)
    status: str = Field(default="created", max_length=20, index=True)
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=3)
    expires_at: datetime = Field(sa_column=utc_column())
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
