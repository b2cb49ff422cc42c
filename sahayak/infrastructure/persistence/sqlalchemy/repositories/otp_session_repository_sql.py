from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlmodel import Session, select

from .....db.models import OTPSessionRecord
from .....utils import as_utc
from .....application.ports.otp_session_repo import OTPSessionRepository, OTPSessionDto


class SqlOTPSessionRepository(OTPSessionRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: OTPSessionRecord) -> OTPSessionDto:
        return OTPSessionDto(
            id=rec.id,
            phone=rec.phone,
            purpose=rec.purpose,
            code_hash=rec.code_hash,
            status=rec.status,
            attempts=rec.attempts,
            max_attempts=rec.max_attempts,
            expires_at=as_utc(rec.expires_at),
            created_at=as_utc(rec.created_at),
        )

    def create(self, phone: str, purpose: str, code_hash: str, max_attempts: int, expires_at: datetime, created_at: datetime) -> OTPSessionDto:
        rec = OTPSessionRecord(
            phone=phone,
            purpose=purpose,
            code_hash=code_hash,
            max_attempts=max_attempts,
            expires_at=expires_at,
            created_at=created_at,
        )
        self.session.add(rec)
        self.session.commit()
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get(self, session_id: str) -> Optional[OTPSessionDto]:
        rec = self.session.exec(select(OTPSessionRecord).where(OTPSessionRecord.id == session_id)).first()
        return self._to_dto(rec) if rec else None

    def increment_attempts(self, session_id: str) -> Optional[int]:
        # compare-and-increment in one statement so concurrent verifies cannot overwrite each other
        result = self.session.execute(
            update(OTPSessionRecord)
            .where(OTPSessionRecord.id == session_id)
            .where(OTPSessionRecord.status == "created")
            .where(OTPSessionRecord.attempts < OTPSessionRecord.max_attempts)
            .values(attempts=OTPSessionRecord.attempts + 1)
        )
        self.session.commit()
        if result.rowcount != 1:
            return None
        rec = self.get(session_id)
        return rec.attempts if rec else None

    def transition(self, session_id: str, from_status: str, to_status: str) -> bool:
        result = self.session.execute(
            update(OTPSessionRecord)
            .where(OTPSessionRecord.id == session_id)
            .where(OTPSessionRecord.status == from_status)
            .values(status=to_status)
        )
        self.session.commit()
        return result.rowcount == 1

    def supersede(self, phone: str, purpose: str) -> int:
        result = self.session.execute(
            update(OTPSessionRecord)
            .where(OTPSessionRecord.phone == phone)
            .where(OTPSessionRecord.purpose == purpose)
            .where(OTPSessionRecord.status == "created")
            .values(status="superseded")
        )
        self.session.commit()
        return result.rowcount
