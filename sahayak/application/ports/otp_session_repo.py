from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class OTPSessionDto:
    id: str
    phone: str
    purpose: str
    code_hash: str
    status: str
    attempts: int
    max_attempts: int
    expires_at: datetime
    created_at: datetime


class OTPSessionRepository:
    def create(self, phone: str, purpose: str, code_hash: str, max_attempts: int, expires_at: datetime, created_at: datetime) -> OTPSessionDto:
        ...

    def get(self, session_id: str) -> Optional[OTPSessionDto]:
        ...

    def increment_attempts(self, session_id: str) -> Optional[int]:
        """Atomically bump the attempt counter of a live session.

        Returns the new count, or None when the session is no longer in the
        ``created`` state or has no attempts left.
        """
        ...

    def transition(self, session_id: str, from_status: str, to_status: str) -> bool:
        ...

    def supersede(self, phone: str, purpose: str) -> int:
        ...
