from typing import Protocol, Optional
from datetime import datetime

class ArtisanDto:
    def __init__(self, id: str, name: str, phone: str, is_verified: bool,
                 preferred_language: Optional[str], district: Optional[str], created_at: datetime):
        self.id = id
        self.name = name
        self.phone = phone
        self.is_verified = is_verified
        self.preferred_language = preferred_language
        self.district = district
        self.created_at = created_at

class ArtisanRepository(Protocol):
    def get_by_phone(self, phone: str) -> Optional[ArtisanDto]:
        ...

    def get_by_id(self, artisan_id: str) -> Optional[ArtisanDto]:
        ...

    def create(self, name: str, phone: str, preferred_language: Optional[str] = None, district: Optional[str] = None) -> ArtisanDto:
        ...

    def mark_verified(self, artisan_id: str) -> None:
        ...
