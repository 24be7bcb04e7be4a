# crud/ticket_sequence.py
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inquiry import Inquiry
from app.models.ticket_sequence import TicketSequence


# --- Atomically bump the year's counter, returning the new value ---
async def increment_sequence(db: AsyncSession, year: int) -> Optional[int]:
    stmt = (
        update(TicketSequence)
        .where(TicketSequence.year == year)
        .values(last_number=TicketSequence.last_number + 1)
        .returning(TicketSequence.last_number)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# --- Insert the counter row for a new year ---
async def create_sequence(db: AsyncSession, year: int, last_number: int) -> TicketSequence:
    sequence = TicketSequence(year=year, last_number=last_number)
    db.add(sequence)
    await db.flush()
    return sequence


# --- Count issued tickets carrying a prefix ---
async def count_tickets_with_prefix(db: AsyncSession, prefix: str) -> int:
    result = await db.execute(
        select(func.count(Inquiry.inquiry_id)).where(Inquiry.ticket_number.like(f"{prefix}%"))
    )
    return result.scalar() or 0
