from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class RefreshTokenDto:
    session_id: str
    artisan_id: str
    phone: str
    role: str
    is_active: bool
    expires_at: datetime


class RefreshTokenRepository:
    def create(self, session_id: str, artisan_id: str, phone: str, role: str, expires_at: datetime) -> RefreshTokenDto:
        ...

    def get(self, session_id: str) -> Optional[RefreshTokenDto]:
        ...

    def deactivate(self, session_id: str) -> bool:
        ...
