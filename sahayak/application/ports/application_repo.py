from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any


@dataclass
class ApplicationDto:
    id: str
    artisan_id: str
    scheme_id: str
    form_data: Dict[str, Any]
    status: str
    submitted_at: datetime
    updated_at: datetime
    portal_name: Optional[str] = None
    portal_reference: Optional[str] = None
    last_synced_at: Optional[datetime] = None


@dataclass
class TimelineEntryDto:
    id: int
    application_id: str
    status: str
    timestamp: datetime
    note: Optional[str] = None
    source: str = field(default="system")


class ApplicationRepository:
    def create(self, artisan_id: str, scheme_id: str, form_data: Dict[str, Any], status: str, submitted_at: datetime) -> ApplicationDto:
        ...

    def get(self, application_id: str) -> Optional[ApplicationDto]:
        ...

    def get_by_portal_reference(self, portal_reference: str) -> Optional[ApplicationDto]:
        ...

    def list_for_artisan(self, artisan_id: str) -> List[ApplicationDto]:
        ...

    def set_portal_reference(self, application_id: str, portal_name: str, portal_reference: str) -> None:
        ...

    def advance_status(self, application_id: str, expected_status: str, new_status: str, at: datetime) -> bool:
        """Compare-and-set of the current status; False if it changed underneath."""
        ...

    def mark_synced(self, application_id: str, at: datetime) -> None:
        ...

    def add_timeline_entry(self, application_id: str, status: str, timestamp: datetime, note: Optional[str] = None, source: str = "system") -> TimelineEntryDto:
        ...

    def list_timeline(self, application_id: str) -> List[TimelineEntryDto]:
        ...

    def record_event(self, application_id: str, status: str, external_event_id: str, portal_name: str, event: str) -> bool:
        """Claim a webhook event for processing.

        False only when the same key was already claimed and applied; a claim
        whose status change never landed can be taken again by a retry.
        """
        ...

    def mark_event_applied(self, application_id: str, status: str, external_event_id: str) -> None:
        ...
