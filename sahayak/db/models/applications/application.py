# sahayak/db/models/applications/application.py
from typing import Optional, Dict, Any
from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

from ....utils import utcnow, utc_column


class Application(SQLModel, table=True):
    __tablename__ = "applications"
    id: str = Field(default_factory=lambda: f"app_{uuid.uuid4().hex}", primary_key=True)
    artisan_id: str = Field(index=True, max_length=64)
    scheme_id: str = Field(index=True, max_length=64)
    form_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    status: str = Field(default="submitted", max_length=20)
    portal_name: Optional[str] = Field(default=None, max_length=64)
    portal_reference: Optional[str] = Field(default=None, max_length=128, index=True)
    submitted_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
    last_synced_at: Optional[datetime] = Field(default=None, sa_column=utc_column(nullable=True))


class TimelineEntryRecord(SQLModel, table=True):
    __tablename__ = "application_timeline"
    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: str = Field(foreign_key="applications.id", index=True)
    status: str = Field(max_length=20)
    timestamp: datetime = Field(sa_column=utc_column())
    note: Optional[str] = Field(default=None, max_length=500)
    source: str = Field(default="system", max_length=20)


class WebhookEvent(SQLModel, table=True):
    __tablename__ = "webhook_events"
    __table_args__ = (
        UniqueConstraint("application_id", "status", "external_event_id", name="uq_webhook_event"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: str = Field(index=True, max_length=64)
    status: str = Field(max_length=20)
    external_event_id: str = Field(max_length=128)
    portal_name: str = Field(max_length=64)
    event: str = Field(max_length=64)
    # set once the status change has been written; unapplied claims may be retried
    applied: bool = Field(default=False)
    received_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
