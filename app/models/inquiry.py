# models/inquiry.py
from sqlalchemy import (
    Column, String, Text, Boolean, Numeric, DateTime, Uuid, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship
from uuid import uuid4

from app.db.base_class import Base, utcnow

INQUIRY_STATUSES = (
    "new",
    "claimed",
    "assigned",
    "contacted",
    "in-progress",
    "viewing-scheduled",
    "negotiating",
    "viewed-interested",
    "viewed-not-interested",
    "deal-successful",
    "deal-cancelled",
    "no-response",
)

# One terminal set for every rule that asks "is this inquiry closed?"
TERMINAL_INQUIRY_STATUSES = ("deal-successful", "deal-cancelled", "no-response")


class Inquiry(Base):
    __tablename__ = "inquiries"

    inquiry_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    ticket_number = Column(String(32), unique=True, nullable=False)

    # Customer
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)

    # Property snapshot, frozen at submission time
    property_id = Column(Uuid(as_uuid=True), nullable=True)
    property_title = Column(String(255), nullable=True)
    property_price = Column(Numeric(15, 2), nullable=True)
    property_location = Column(String(255), nullable=True)

    status = Column(String(30), nullable=False, default="new")
    assigned_to = Column(Uuid(as_uuid=True), nullable=True)
    claimed_by = Column(Uuid(as_uuid=True), nullable=True)
    assigned_by = Column(Uuid(as_uuid=True), nullable=True)
    claimed_at = Column(DateTime, nullable=True)
    assigned_at = Column(DateTime, nullable=True)

    last_follow_up_at = Column(DateTime, nullable=True)
    next_follow_up_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('new','claimed','assigned','contacted','in-progress','viewing-scheduled','negotiating',"
            "'viewed-interested','viewed-not-interested','deal-successful','deal-cancelled','no-response')",
            name="chk_inquiry_status",
        ),
        Index("idx_inquiries_email_property", "email", "property_id"),
        Index("idx_inquiries_assigned_to", "assigned_to"),
        Index("idx_inquiries_status", "status"),
        Index("idx_inquiries_created", "created_at"),
    )

    # Relationships
    notes = relationship(
        "InquiryNote", back_populates="inquiry", cascade="all, delete-orphan",
        order_by="InquiryNote.created_at", lazy="selectin",
    )
    reminders = relationship(
        "FollowUpReminder", back_populates="inquiry", cascade="all, delete-orphan",
        order_by="FollowUpReminder.due_at", lazy="selectin",
    )

    @property
    def is_closed(self) -> bool:
        return self.status in TERMINAL_INQUIRY_STATUSES


class InquiryNote(Base):
    __tablename__ = "inquiry_notes"

    note_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    inquiry_id = Column(Uuid(as_uuid=True), ForeignKey("inquiries.inquiry_id", ondelete="CASCADE"), nullable=False)
    agent_id = Column(Uuid(as_uuid=True), nullable=False)
    agent_name = Column(String(200), nullable=False)
    note = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_notes_inquiry", "inquiry_id"),
    )

    inquiry = relationship("Inquiry", back_populates="notes")


class FollowUpReminder(Base):
    __tablename__ = "follow_up_reminders"

    reminder_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    inquiry_id = Column(Uuid(as_uuid=True), ForeignKey("inquiries.inquiry_id", ondelete="CASCADE"), nullable=False)
    due_at = Column(DateTime(timezone=False), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_reminders_inquiry", "inquiry_id"),
        Index("idx_reminders_due", "due_at"),
    )

    inquiry = relationship("Inquiry", back_populates="reminders")
