# crud/common.py
from typing import Any, List, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


# --- Count + page slice for any ORM select ---
async def paginate(db: AsyncSession, stmt: Select, page: int, limit: int) -> Tuple[int, List[Any]]:
    total = await db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    result = await db.execute(stmt.limit(limit).offset((page - 1) * limit))
    return total or 0, list(result.scalars().all())
