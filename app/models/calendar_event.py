# models/calendar_event.py
from sqlalchemy import Column, String, Text, DateTime, Uuid, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from uuid import uuid4

from app.db.base_class import Base, utcnow

EVENT_TYPES = ("viewing", "meeting", "other")


class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    event_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    agent_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    inquiry_id = Column(Uuid(as_uuid=True), nullable=True)  # lookup only, no FK
    type = Column(String(20), nullable=False, default="viewing")
    created_by = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("type IN ('viewing','meeting','other')", name="chk_event_type"),
        CheckConstraint("end_time > start_time", name="chk_event_window"),
        Index("idx_events_agent_start", "agent_id", "start_time"),
    )

    # Relationships
    agent = relationship("User", back_populates="calendar_events")
