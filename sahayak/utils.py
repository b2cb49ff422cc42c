from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime


def utcnow() -> datetime:
    """Timezone-aware current time in UTC; every stored timestamp uses it."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC. Naive values are taken to be UTC already
    (SQLite hands timestamps back without an offset)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_column(nullable: bool = False, index: bool = False) -> Column:
    return Column(DateTime(timezone=True), nullable=nullable, index=index)
