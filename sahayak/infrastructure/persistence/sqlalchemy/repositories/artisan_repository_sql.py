from typing import Optional
from sqlmodel import Session, select

from .....db.models import Artisan
from .....utils import utcnow, as_utc
from .....application.ports.artisan_repo import ArtisanRepository, ArtisanDto

class SqlArtisanRepository(ArtisanRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, artisan: Artisan) -> ArtisanDto:
        return ArtisanDto(
            id=artisan.id,
            name=artisan.name,
            phone=artisan.phone,
            is_verified=bool(artisan.is_verified),
            preferred_language=artisan.preferred_language,
            district=artisan.district,
            created_at=as_utc(artisan.created_at),
        )

    def get_by_phone(self, phone: str) -> Optional[ArtisanDto]:
        artisan = self.session.exec(select(Artisan).where(Artisan.phone == phone)).first()
        return self._to_dto(artisan) if artisan else None

    def get_by_id(self, artisan_id: str) -> Optional[ArtisanDto]:
        artisan = self.session.exec(select(Artisan).where(Artisan.id == artisan_id)).first()
        return self._to_dto(artisan) if artisan else None

    def create(self, name: str, phone: str, preferred_language: Optional[str] = None, district: Optional[str] = None) -> ArtisanDto:
        artisan = Artisan(name=name, phone=phone, preferred_language=preferred_language, district=district)
        self.session.add(artisan)
        self.session.commit()
        self.session.refresh(artisan)
        return self._to_dto(artisan)

    def mark_verified(self, artisan_id: str) -> None:
        artisan = self.session.exec(select(Artisan).where(Artisan.id == artisan_id)).first()
        if not artisan:
            return
        artisan.is_verified = True
        artisan.updated_at = utcnow()
        self.session.add(artisan)
        self.session.commit()
