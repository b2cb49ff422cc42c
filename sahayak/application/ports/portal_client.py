from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Optional

from .application_repo import ApplicationDto


class PortalError(Exception):
    pass


@dataclass
class PortalStatus:
    status: str
    occurred_at: Optional[datetime] = None
    event_id: Optional[str] = None
    note: Optional[str] = None


class PortalClient(Protocol):
    def submit(self, portal_name: str, application: ApplicationDto) -> str:
        ...

    def fetch_status(self, portal_name: str, portal_reference: str) -> PortalStatus:
        ...
