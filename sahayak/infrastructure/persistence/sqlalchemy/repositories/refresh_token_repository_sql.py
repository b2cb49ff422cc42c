from datetime import datetime
from typing import Optional
from sqlmodel import Session, select

from .....db.models import RefreshTokenRecord
from .....utils import utcnow, as_utc
from .....application.ports.refresh_token_repo import RefreshTokenRepository, RefreshTokenDto


class SqlRefreshTokenRepository(RefreshTokenRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: RefreshTokenRecord) -> RefreshTokenDto:
        return RefreshTokenDto(
            session_id=rec.session_id,
            artisan_id=rec.artisan_id,
            phone=rec.phone,
            role=rec.role,
            is_active=rec.is_active,
            expires_at=as_utc(rec.expires_at),
        )

    def create(self, session_id: str, artisan_id: str, phone: str, role: str, expires_at: datetime) -> RefreshTokenDto:
        rec = RefreshTokenRecord(session_id=session_id, artisan_id=artisan_id, phone=phone, role=role, expires_at=expires_at)
        self.session.add(rec)
        self.session.commit()
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get(self, session_id: str) -> Optional[RefreshTokenDto]:
        rec = self.session.exec(select(RefreshTokenRecord).where(RefreshTokenRecord.session_id == session_id)).first()
        return self._to_dto(rec) if rec else None

    def deactivate(self, session_id: str) -> bool:
        rec = self.session.exec(select(RefreshTokenRecord).where(RefreshTokenRecord.session_id == session_id)).first()
        if not rec or not rec.is_active:
            return False
        rec.is_active = False
        rec.logged_out_at = utcnow()
        self.session.add(rec)
        self.session.commit()
        return True
