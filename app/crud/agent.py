# app/crud/agent.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, case

from app.models import Inquiry, User
from app.models.inquiry import TERMINAL_INQUIRY_STATUSES


async def get_agent_workload(db: AsyncSession):
    """ Inquiry counts per agent: active (not closed), total, and successful deals """
    query = (
        select(
            User.user_id.label("agent_id"),
            User.name.label("agent_name"),
            func.coalesce(
                func.sum(case((Inquiry.status.notin_(TERMINAL_INQUIRY_STATUSES), 1), else_=0)), 0
            ).label("active_inquiries"),
            func.count(Inquiry.inquiry_id).label("total_inquiries"),
            func.coalesce(
                func.sum(case((Inquiry.status == "deal-successful", 1), else_=0)), 0
            ).label("successful_inquiries"),
        )
        .outerjoin(Inquiry, Inquiry.assigned_to == User.user_id)
        .where(User.role == "agent")
        .group_by(User.user_id, User.name)
        .order_by(User.name.asc())
    )

    result = await db.execute(query)
    return result.mappings().all()
