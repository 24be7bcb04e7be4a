# crud/activity_log.py
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.common import paginate
from app.db.base_class import utcnow
from app.models.activity_log import ActivityLog


# --- Insert Activity Log entry (no commit; rides on the caller's transaction) ---
async def create_log_entry(
    db: AsyncSession,
    action: str,
    details: str,
    performed_by: str,
    performed_by_id: Optional[UUID] = None,
) -> ActivityLog:
    entry = ActivityLog(
        action=action,
        details=details,
        performed_by=performed_by,
        performed_by_id=performed_by_id,
        timestamp=utcnow(),
    )
    db.add(entry)
    return entry


# --- List Activity Log, newest first ---
async def list_log_entries(
    db: AsyncSession,
    page: int,
    limit: int,
    action: Optional[str] = None,
) -> Tuple[int, List[ActivityLog]]:
    stmt = select(ActivityLog)
    if action:
        stmt = stmt.where(ActivityLog.action == action)
    stmt = stmt.order_by(ActivityLog.timestamp.desc())
    return await paginate(db, stmt, page, limit)
