# sahayak/db/models/artisans/artisan.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

from ....utils import utcnow, utc_column


class Artisan(SQLModel, table=True):
    __tablename__ = "artisans"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=100)
    phone: str = Field(max_length=20, unique=True, index=True)
    preferred_language: Optional[str] = Field(max_length=10, default=None)
    district: Optional[str] = Field(max_length=100, default=None)
    is_verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
