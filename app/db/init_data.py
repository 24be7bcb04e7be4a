# app/db/init_data.py
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import get_password_hash
from app.crud import user as crud_user

logger = logging.getLogger(__name__)


async def ensure_first_admin(db: AsyncSession) -> None:
    """Create the bootstrap admin from FIRST_ADMIN_* settings if it does not exist yet."""
    if not settings.FIRST_ADMIN_EMAIL or not settings.FIRST_ADMIN_PASSWORD:
        return

    email = settings.FIRST_ADMIN_EMAIL.lower()
    if await crud_user.get_user_by_email(db, email):
        return

    await crud_user.create_user(
        db,
        email=email,
        name=settings.FIRST_ADMIN_NAME,
        hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
        role="admin",
    )
    await db.commit()
    logger.info("Created bootstrap admin %s", email)
