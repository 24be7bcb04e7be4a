from typing import List, Literal, Optional
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


# --- Workload (admin view) ---
class AgentWorkloadItem(BaseModel):
    agent_id: UUID
    agent_name: str
    active_inquiries: int
    total_inquiries: int
    successful_inquiries: int

    model_config = {"from_attributes": True}


# --- Commission dashboard ---
class CommissionItem(BaseModel):
    property_id: UUID
    title: str
    location: str
    listing_price: float
    sale_price: Optional[float] = None
    rate: float
    amount: float
    status: Literal["pending", "paid"]
    sold_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CommissionSummary(BaseModel):
    agent_id: UUID
    total_commission: float
    paid_commission: float
    pending_commission: float
    paid_count: int
    pending_count: int
    commissions: List[CommissionItem]

    model_config = {"from_attributes": True}
