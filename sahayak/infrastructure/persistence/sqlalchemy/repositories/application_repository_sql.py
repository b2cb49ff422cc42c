from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import Application, TimelineEntryRecord, WebhookEvent
from .....utils import as_utc
from .....application.ports.application_repo import (
    ApplicationRepository,
    ApplicationDto,
    TimelineEntryDto,
)


class SqlApplicationRepository(ApplicationRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, a: Application) -> ApplicationDto:
        return ApplicationDto(
            id=a.id,
            artisan_id=a.artisan_id,
            scheme_id=a.scheme_id,
            form_data=dict(a.form_data or {}),
            status=a.status,
            submitted_at=as_utc(a.submitted_at),
            updated_at=as_utc(a.updated_at),
            portal_name=a.portal_name,
            portal_reference=a.portal_reference,
            last_synced_at=as_utc(a.last_synced_at),
        )

    def _entry_to_dto(self, e: TimelineEntryRecord) -> TimelineEntryDto:
        return TimelineEntryDto(
            id=e.id,
            application_id=e.application_id,
            status=e.status,
            timestamp=as_utc(e.timestamp),
            note=e.note,
            source=e.source,
        )

    def _load(self, application_id: str) -> Optional[Application]:
        return self.session.exec(select(Application).where(Application.id == application_id)).first()

    def create(self, artisan_id: str, scheme_id: str, form_data: Dict[str, Any], status: str, submitted_at: datetime) -> ApplicationDto:
        submitted_at = as_utc(submitted_at)
        app = Application(
            artisan_id=artisan_id,
            scheme_id=scheme_id,
            form_data=form_data,
            status=status,
            submitted_at=submitted_at,
            updated_at=submitted_at,
        )
        self.session.add(app)
        self.session.commit()
        self.session.refresh(app)
        return self._to_dto(app)

    def get(self, application_id: str) -> Optional[ApplicationDto]:
        a = self._load(application_id)
        return self._to_dto(a) if a else None

    def get_by_portal_reference(self, portal_reference: str) -> Optional[ApplicationDto]:
        a = self.session.exec(select(Application).where(Application.portal_reference == portal_reference)).first()
        return self._to_dto(a) if a else None

    def list_for_artisan(self, artisan_id: str) -> List[ApplicationDto]:
        rows = self.session.exec(
            select(Application)
            .where(Application.artisan_id == artisan_id)
            .order_by(Application.submitted_at.desc())
        ).all()
        return [self._to_dto(r) for r in rows]

    def set_portal_reference(self, application_id: str, portal_name: str, portal_reference: str) -> None:
        a = self._load(application_id)
        if not a:
            return
        a.portal_name = portal_name
        a.portal_reference = portal_reference
        self.session.add(a)
        self.session.commit()

    def advance_status(self, application_id: str, expected_status: str, new_status: str, at: datetime) -> bool:
        result = self.session.execute(
            update(Application)
            .where(Application.id == application_id)
            .where(Application.status == expected_status)
            .values(status=new_status, updated_at=as_utc(at))
        )
        self.session.commit()
        return result.rowcount == 1

    def mark_synced(self, application_id: str, at: datetime) -> None:
        a = self._load(application_id)
        if not a:
            return
        a.last_synced_at = as_utc(at)
        self.session.add(a)
        self.session.commit()

    def add_timeline_entry(self, application_id: str, status: str, timestamp: datetime, note: Optional[str] = None, source: str = "system") -> TimelineEntryDto:
        entry = TimelineEntryRecord(
            application_id=application_id,
            status=status,
            timestamp=as_utc(timestamp),
            note=note,
            source=source,
        )
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return self._entry_to_dto(entry)

    def list_timeline(self, application_id: str) -> List[TimelineEntryDto]:
        rows = self.session.exec(
            select(TimelineEntryRecord)
            .where(TimelineEntryRecord.application_id == application_id)
            .order_by(TimelineEntryRecord.timestamp, TimelineEntryRecord.id)
        ).all()
        return [self._entry_to_dto(r) for r in rows]

    def record_event(self, application_id: str, status: str, external_event_id: str, portal_name: str, event: str) -> bool:
        self.session.add(WebhookEvent(
            application_id=application_id,
            status=status,
            external_event_id=external_event_id,
            portal_name=portal_name,
            event=event,
        ))
        try:
            self.session.commit()
            return True
        except IntegrityError:
            self.session.rollback()
        existing = self.session.exec(
            select(WebhookEvent)
            .where(WebhookEvent.application_id == application_id)
            .where(WebhookEvent.status == status)
            .where(WebhookEvent.external_event_id == external_event_id)
        ).first()
        # an earlier delivery that never got applied may be retried
        return existing is not None and not existing.applied

    def mark_event_applied(self, application_id: str, status: str, external_event_id: str) -> None:
        self.session.execute(
            update(WebhookEvent)
            .where(WebhookEvent.application_id == application_id)
            .where(WebhookEvent.status == status)
            .where(WebhookEvent.external_event_id == external_event_id)
            .values(applied=True)
        )
        self.session.commit()
