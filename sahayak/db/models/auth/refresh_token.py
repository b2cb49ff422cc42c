# sahayak/db/models/auth/refresh_token.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime

from ....utils import utcnow, utc_column


class RefreshTokenRecord(SQLModel, table=True):
    __tablename__ = "refresh_tokens"
    session_id: str = Field(primary_key=True, max_length=64)
    artisan_id: str = Field(foreign_key="artisans.id", index=True)
    phone: str = Field(max_length=20)
    role: str = Field(default="artisan", max_length=20)
    is_active: bool = Field(default=True)
    expires_at: datetime = Field(sa_column=utc_column())
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
    logged_out_at: Optional[datetime] = Field(default=None, sa_column=utc_column(nullable=True))
