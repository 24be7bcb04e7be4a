# db/base_class.py
from sqlalchemy.orm import as_declarative, declared_attr
from datetime import datetime, timezone
from zoneinfo import ZoneInfo
from sqlalchemy import Column, DateTime

from app.config import settings


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime | None) -> datetime | None:
    """Normalise an incoming datetime to naive UTC (naive input is taken as UTC)."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_business_time(value: datetime) -> datetime:
    """Naive UTC -> aware datetime in the brokerage's local timezone."""
    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(settings.BUSINESS_TIMEZONE))


@as_declarative()
class Base:
    id: any
    __name__: str

    # Generate __tablename__ automatically if not provided
    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    # Optional timestamps for all tables
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
