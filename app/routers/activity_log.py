from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from app.db.session import get_db
from app.dependencies import Actor, require_roles
from app.schemas.activity_log import ActivityLogItem
from app.schemas.common import Page
from app.services.activity_logger import ActivityLogger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/activity-log", tags=["Activity Log"])


@router.get(
    "",
    response_model=Page[ActivityLogItem],
    summary="Audit trail",
    description="Newest first, optionally filtered by action (e.g. CLAIM_INQUIRY, SELL_PROPERTY)."
)
async def list_activity_log(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[str] = Query(None, description="Exact action name"),
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        total, rows = await ActivityLogger.list_entries_service(db, page=page, limit=limit, action=action)
        return Page[ActivityLogItem].build(
            [ActivityLogItem.model_validate(row) for row in rows], total, page, limit,
        )
    except Exception as e:
        logger.error("Error in list_activity_log: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})
