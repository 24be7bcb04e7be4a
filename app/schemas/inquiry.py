from typing import List, Literal, Optional
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime

InquiryStatus = Literal[
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
]


# --- Public submission ---
# Field rules (email/phone pattern, message length) are checked by the service
# so the caller gets one field -> message map instead of a schema error.
class InquiryCreateRequest(BaseModel):
    name: str
    email: str
    phone: str
    message: str
    property_id: Optional[UUID] = None
    property_title: Optional[str] = None
    property_price: Optional[float] = None
    property_location: Optional[str] = None


# --- Agent / admin actions ---
class InquiryAssignRequest(BaseModel):
    agent_id: UUID
    agent_name: Optional[str] = None


class InquiryStatusUpdateRequest(BaseModel):
    status: InquiryStatus
    note: Optional[str] = None


class InquiryNoteCreateRequest(BaseModel):
    note: str = Field(min_length=1, max_length=5000)


class FollowUpReminderCreateRequest(BaseModel):
    due_at: datetime
    note: Optional[str] = None


# --- Response submodels ---
class InquiryNoteItem(BaseModel):
    note_id: UUID
    agent_id: UUID
    agent_name: str
    note: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FollowUpReminderItem(BaseModel):
    reminder_id: UUID
    due_at: datetime
    completed: bool
    completed_at: Optional[datetime] = None
    note: Optional[str] = None

    model_config = {"from_attributes": True}


# --- Full response model ---
class InquiryResponse(BaseModel):
    inquiry_id: UUID
    ticket_number: str
    name: str
    email: str
    phone: str
    message: str
    property_id: Optional[UUID] = None
    property_title: Optional[str] = None
    property_price: Optional[float] = None
    property_location: Optional[str] = None
    status: InquiryStatus
    assigned_to: Optional[UUID] = None
    claimed_by: Optional[UUID] = None
    assigned_by: Optional[UUID] = None
    claimed_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    notes: List[InquiryNoteItem] = []
    reminders: List[FollowUpReminderItem] = []
    last_follow_up_at: Optional[datetime] = None
    next_follow_up_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
