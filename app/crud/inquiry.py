# app/crud/inquiry.py
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.common import paginate
from app.models.inquiry import Inquiry, InquiryNote, FollowUpReminder, TERMINAL_INQUIRY_STATUSES


# --- Fetch Inquiry by ID ---
async def get_inquiry_by_id(db: AsyncSession, inquiry_id: UUID, refresh: bool = False) -> Optional[Inquiry]:
    stmt = select(Inquiry).where(Inquiry.inquiry_id == inquiry_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# --- Duplicate check ---
async def get_recent_open_duplicate(
    db: AsyncSession,
    email: str,
    property_id: Optional[UUID],
    since: datetime,
) -> Optional[Inquiry]:
    property_clause = Inquiry.property_id.is_(None) if property_id is None else Inquiry.property_id == property_id
    stmt = (
        select(Inquiry)
        .where(
            and_(
                Inquiry.email == email,
                property_clause,
                Inquiry.created_at >= since,
                Inquiry.status.notin_(TERMINAL_INQUIRY_STATUSES),
            )
        )
        .order_by(Inquiry.created_at.asc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# --- Insert Inquiry ---
async def create_inquiry(db: AsyncSession, inquiry_data: Dict[str, Any], ticket_number: str, now: datetime) -> Inquiry:
    inquiry = Inquiry(
        **inquiry_data,
        ticket_number=ticket_number,
        status="new",
        created_at=now,
        updated_at=now,
    )
    db.add(inquiry)
    await db.flush()
    return inquiry


# --- Claim: compare-and-set on assigned_to ---
async def claim_if_unassigned(db: AsyncSession, inquiry_id: UUID, agent_id: UUID, now: datetime) -> int:
    stmt = (
        update(Inquiry)
        .where(
            Inquiry.inquiry_id == inquiry_id,
            Inquiry.assigned_to.is_(None),
            Inquiry.status.notin_(TERMINAL_INQUIRY_STATUSES),
        )
        .values(
            assigned_to=agent_id,
            claimed_by=agent_id,
            claimed_at=now,
            status="claimed",
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


# --- Assign (admin override, no precondition) ---
async def assign_inquiry(db: AsyncSession, inquiry_id: UUID, agent_id: UUID, admin_id: UUID, now: datetime) -> int:
    stmt = (
        update(Inquiry)
        .where(Inquiry.inquiry_id == inquiry_id)
        .values(
            assigned_to=agent_id,
            assigned_by=admin_id,
            assigned_at=now,
            status="assigned",
            closed_at=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


# --- Status write, guarded on the status the transition was validated against ---
async def update_status_if(
    db: AsyncSession,
    inquiry_id: UUID,
    expected_status: str,
    new_status: str,
    now: datetime,
) -> int:
    values: Dict[str, Any] = {"status": new_status, "updated_at": now}
    if new_status in TERMINAL_INQUIRY_STATUSES and expected_status not in TERMINAL_INQUIRY_STATUSES:
        values["closed_at"] = now
    stmt = (
        update(Inquiry)
        .where(Inquiry.inquiry_id == inquiry_id, Inquiry.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


# --- Touch follow-up summary columns ---
async def update_follow_up_fields(db: AsyncSession, inquiry: Inquiry, now: datetime, **values: Any) -> Inquiry:
    for key, value in values.items():
        setattr(inquiry, key, value)
    inquiry.updated_at = now
    await db.flush()
    return inquiry


# --- Insert Note ---
async def create_note(
    db: AsyncSession,
    inquiry_id: UUID,
    agent_id: UUID,
    agent_name: str,
    note: str,
    now: datetime,
) -> InquiryNote:
    entry = InquiryNote(
        inquiry_id=inquiry_id,
        agent_id=agent_id,
        agent_name=agent_name,
        note=note,
        created_at=now,
    )
    db.add(entry)
    await db.flush()
    await db.execute(
        update(Inquiry)
        .where(Inquiry.inquiry_id == inquiry_id)
        .values(updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return entry


# --- Insert Reminder ---
async def create_reminder(
    db: AsyncSession,
    inquiry_id: UUID,
    due_at: datetime,
    note: Optional[str],
) -> FollowUpReminder:
    reminder = FollowUpReminder(inquiry_id=inquiry_id, due_at=due_at, note=note, completed=False)
    db.add(reminder)
    await db.flush()
    return reminder


# --- Fetch Reminder ---
async def get_reminder(db: AsyncSession, inquiry_id: UUID, reminder_id: UUID) -> Optional[FollowUpReminder]:
    result = await db.execute(
        select(FollowUpReminder).where(
            FollowUpReminder.reminder_id == reminder_id,
            FollowUpReminder.inquiry_id == inquiry_id,
        )
    )
    return result.scalar_one_or_none()


# --- Complete Reminder: only flips an open one ---
async def complete_reminder_if_open(db: AsyncSession, reminder_id: UUID, now: datetime) -> int:
    stmt = (
        update(FollowUpReminder)
        .where(FollowUpReminder.reminder_id == reminder_id, FollowUpReminder.completed.is_(False))
        .values(completed=True, completed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


# --- Earliest open reminder ---
async def get_next_open_due_at(db: AsyncSession, inquiry_id: UUID) -> Optional[datetime]:
    result = await db.execute(
        select(FollowUpReminder.due_at)
        .where(FollowUpReminder.inquiry_id == inquiry_id, FollowUpReminder.completed.is_(False))
        .order_by(FollowUpReminder.due_at.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# --- List Inquiries (visibility applied by the caller's filters) ---
async def list_inquiries(
    db: AsyncSession,
    page: int,
    limit: int,
    visible_to_agent: Optional[UUID] = None,
    status: Optional[str] = None,
) -> Tuple[int, List[Inquiry]]:
    stmt = select(Inquiry)
    if visible_to_agent is not None:
        stmt = stmt.where(or_(Inquiry.assigned_to == visible_to_agent, Inquiry.assigned_to.is_(None)))
    if status:
        stmt = stmt.where(Inquiry.status == status)
    stmt = stmt.order_by(Inquiry.created_at.desc())
    return await paginate(db, stmt, page, limit)


# --- Delete Inquiry ---
async def delete_inquiry(db: AsyncSession, inquiry_id: UUID) -> bool:
    await db.execute(delete(InquiryNote).where(InquiryNote.inquiry_id == inquiry_id))
    await db.execute(delete(FollowUpReminder).where(FollowUpReminder.inquiry_id == inquiry_id))
    result = await db.execute(delete(Inquiry).where(Inquiry.inquiry_id == inquiry_id))
    return result.rowcount > 0
