# crud/calendar_event.py
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.common import paginate
from app.models.calendar_event import CalendarEvent


# --- Fetch Event by ID ---
async def get_event_by_id(db: AsyncSession, event_id: UUID) -> Optional[CalendarEvent]:
    result = await db.execute(select(CalendarEvent).where(CalendarEvent.event_id == event_id))
    return result.scalar_one_or_none()


# --- Events of an agent overlapping a (padded) window ---
async def get_overlapping_events(
    db: AsyncSession,
    agent_id: UUID,
    window_start: datetime,
    window_end: datetime,
    exclude_event_id: Optional[UUID] = None,
) -> List[CalendarEvent]:
    stmt = select(CalendarEvent).where(
        CalendarEvent.agent_id == agent_id,
        CalendarEvent.start_time < window_end,
        CalendarEvent.end_time > window_start,
    )
    if exclude_event_id is not None:
        stmt = stmt.where(CalendarEvent.event_id != exclude_event_id)
    result = await db.execute(stmt.order_by(CalendarEvent.start_time.asc()))
    return list(result.scalars().all())


# --- Insert Event ---
async def create_event(db: AsyncSession, event_data: Dict[str, Any]) -> CalendarEvent:
    event = CalendarEvent(**event_data)
    db.add(event)
    await db.flush()
    return event


# --- Update Event fields ---
async def update_event(db: AsyncSession, event: CalendarEvent, values: Dict[str, Any]) -> CalendarEvent:
    for key, value in values.items():
        setattr(event, key, value)
    await db.flush()
    return event


# --- List Events ---
async def list_events(
    db: AsyncSession,
    page: int,
    limit: int,
    agent_id: Optional[UUID] = None,
) -> Tuple[int, List[CalendarEvent]]:
    stmt = select(CalendarEvent)
    if agent_id is not None:
        stmt = stmt.where(CalendarEvent.agent_id == agent_id)
    stmt = stmt.order_by(CalendarEvent.start_time.asc())
    return await paginate(db, stmt, page, limit)


# --- Delete Event ---
async def delete_event(db: AsyncSession, event_id: UUID) -> bool:
    result = await db.execute(delete(CalendarEvent).where(CalendarEvent.event_id == event_id))
    return result.rowcount > 0
