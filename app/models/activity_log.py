# models/activity_log.py
from sqlalchemy import Column, String, Text, DateTime, Uuid, Index
from uuid import uuid4

from app.db.base_class import Base, utcnow


class ActivityLog(Base):
    __tablename__ = "activity_log"

    log_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=False, default="")
    performed_by = Column(String(200), nullable=False)  # actor name, "Public" or "System"
    performed_by_id = Column(Uuid(as_uuid=True), nullable=True)

    # Append-only
    updated_at = None

    __table_args__ = (
        Index("idx_activity_log_time", "timestamp"),
        Index("idx_activity_log_action", "action"),
    )
