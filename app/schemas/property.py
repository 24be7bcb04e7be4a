from typing import List, Literal, Optional
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime

from app.config import settings

PropertyStatus = Literal["draft", "available", "reserved", "under-contract", "sold", "withdrawn", "off-market"]


# --- Create ---
class PropertyCreateRequest(BaseModel):
    title: str = Field(min_length=10, max_length=255)
    type: str = "House"
    price: float = Field(ge=100_000, le=1_000_000_000)
    location: str = ""
    bedrooms: int = Field(default=0, ge=0, le=10)
    bathrooms: int = Field(default=1, ge=1, le=10)
    area: float = Field(ge=10, le=10_000)
    description: str = ""
    features: List[str] = []
    images: List[str] = []  # ordered URLs, first is the cover
    status: Optional[Literal["draft", "available", "off-market"]] = None  # admin only
    publish: bool = False  # agent asks to skip draft


# --- Status change (sale details apply when status == "sold") ---
class PropertyStatusUpdateRequest(BaseModel):
    status: PropertyStatus
    reason: Optional[str] = None
    agent_id: Optional[UUID] = None
    sale_price: Optional[float] = Field(default=None, gt=0)
    commission_rate: Optional[float] = Field(default=None, gt=0, le=100)
    hours: Optional[int] = Field(default=None, ge=1, le=720)


class PropertyReserveRequest(BaseModel):
    agent_id: UUID
    hours: int = Field(default=settings.DEFAULT_RESERVATION_HOURS, ge=1, le=720)


# --- Response submodels ---
class StatusHistoryItem(BaseModel):
    sequence: int
    status: str
    changed_by: str
    changed_by_name: str
    changed_at: datetime
    reason: Optional[str] = None

    model_config = {"from_attributes": True}


class CommissionInfo(BaseModel):
    rate: float
    amount: float
    status: Literal["pending", "paid"]
    paid_at: Optional[datetime] = None
    paid_by: Optional[str] = None

    model_config = {"from_attributes": True}


class PropertyResponse(BaseModel):
    property_id: UUID
    title: str
    type: str
    price: float
    location: str
    bedrooms: int
    bathrooms: int
    area: float
    description: str
    features: List[str]
    status: PropertyStatus
    image_url: str
    image_urls: List[str]
    created_by: Optional[str] = None
    status_history: List[StatusHistoryItem] = []
    reserved_by: Optional[str] = None
    reserved_by_agent_id: Optional[UUID] = None
    reserved_at: Optional[datetime] = None
    reserved_until: Optional[datetime] = None
    sold_by: Optional[str] = None
    sold_by_agent_id: Optional[UUID] = None
    sold_at: Optional[datetime] = None
    sale_price: Optional[float] = None
    commission: Optional[CommissionInfo] = None
    view_count: int
    last_viewed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReleasedReservationsResponse(BaseModel):
    released: List[UUID]
