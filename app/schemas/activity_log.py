from typing import Optional
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


class ActivityLogItem(BaseModel):
    log_id: UUID
    timestamp: datetime
    action: str
    details: str
    performed_by: str
    performed_by_id: Optional[UUID] = None

    model_config = {"from_attributes": True}
