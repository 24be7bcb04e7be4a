from dataclasses import dataclass
from typing import Optional
from uuid import UUID
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import decode_access_token
from app.crud import user as crud_user
from app.db.session import get_db
from app.models.user import ADMIN_ROLES

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated principal every core operation runs as."""

    user_id: UUID
    name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_current_actor(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """
    Resolve the bearer token to an Actor.
    The role always comes from the users table, never from the token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "Invalid or expired token"},
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise credentials_exception

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        logger.warning("Token carries a malformed subject")
        raise credentials_exception

    user = await crud_user.get_user_by_id(db, user_id)
    if user is None:
        logger.warning("Token subject %s no longer exists", user_id)
        raise credentials_exception

    return Actor(user_id=user.user_id, name=user.name, role=user.role)


async def get_optional_actor(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Actor]:
    """Public endpoints: anonymous callers get None, a bearer token must still be valid."""
    if not token:
        return None
    return await get_current_actor(token, db)


def require_roles(*roles: str):
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        allowed = set(roles)
        if "admin" in allowed:
            allowed.update(ADMIN_ROLES)
        if actor.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "Insufficient permissions"},
            )
        return actor

    return role_checker
