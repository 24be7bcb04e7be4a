from typing import Literal, Optional
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

EventType = Literal["viewing", "meeting", "other"]


class CalendarEventCreateRequest(BaseModel):
    title: str = ""
    description: Optional[str] = None
    start: datetime
    end: datetime
    agent_id: Optional[UUID] = None  # defaults to the acting agent
    inquiry_id: Optional[UUID] = None
    type: EventType = "viewing"


class CalendarEventUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    type: Optional[EventType] = None


class CalendarEventResponse(BaseModel):
    event_id: UUID
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    agent_id: UUID
    inquiry_id: Optional[UUID] = None
    type: EventType
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
