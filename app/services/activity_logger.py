from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import activity_log as crud_log
from app.dependencies import Actor
from app.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

ANONYMOUS = "Public"
SYSTEM = "System"


class ActivityLogger:
    """
        Append-only audit trail for every significant mutation.

        Two write paths:
            - record(): the entry is added to the caller's session and commits (or rolls back)
              together with the mutation it describes.
            - record_security_event(): used on rejection paths where the request itself persists
              nothing. The entry is committed on its own; a storage failure is rolled back and
              reported to the application log instead of failing the caller.
    """

    @staticmethod
    async def record(
        db: AsyncSession,
        action: str,
        details: str,
        actor: Optional[Actor] = None,
        performed_by: str = ANONYMOUS,
    ) -> ActivityLog:
        return await crud_log.create_log_entry(
            db,
            action=action,
            details=details,
            performed_by=actor.name if actor else performed_by,
            performed_by_id=actor.user_id if actor else None,
        )

    @staticmethod
    async def record_security_event(
        db: AsyncSession,
        action: str,
        details: str,
        performed_by: str = ANONYMOUS,
        performed_by_id: Optional[UUID] = None,
    ) -> None:
        logger.warning("Security event %s: %s", action, details)
        try:
            await crud_log.create_log_entry(
                db,
                action=action,
                details=details,
                performed_by=performed_by,
                performed_by_id=performed_by_id,
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to persist %s activity entry: %s", action, e)

    @staticmethod
    async def list_entries_service(db: AsyncSession, page: int, limit: int, action: Optional[str] = None):
        return await crud_log.list_log_entries(db, page=page, limit=limit, action=action)
