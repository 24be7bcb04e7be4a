from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.exceptions import AuthenticationFailed, NotFound
from app.core.security import create_access_token, verify_password
from app.crud import user as crud_user
from app.dependencies import Actor
from app.schemas.auth import LoginRequest, LoginResponse, UserResponse
from app.services.activity_logger import ActivityLogger

logger = logging.getLogger(__name__)


class AuthServices:

    @staticmethod
    async def login_service(request: LoginRequest, db: AsyncSession) -> LoginResponse:
        """
        Exchange credentials for a bearer token.
        A failed attempt is recorded as a LOGIN_FAILED security event; the response does not say
        whether the email or the password was wrong.
        """
        email = request.email.lower()
        user = await crud_user.get_user_by_email(db, email)

        if not user or not verify_password(request.password, user.hashed_password):
            await ActivityLogger.record_security_event(db, "LOGIN_FAILED", f"Failed login attempt for {email}")
            raise AuthenticationFailed("Invalid email or password")

        await ActivityLogger.record(db, "LOGIN", f"{user.name} signed in", Actor(user.user_id, user.name, user.role))
        await db.commit()

        logger.info("User %s signed in", user.user_id)
        return LoginResponse(
            access_token=create_access_token(str(user.user_id)),
            user=UserResponse.model_validate(user),
        )

    @staticmethod
    async def get_me_service(actor: Actor, db: AsyncSession) -> UserResponse:
        user = await crud_user.get_user_by_id(db, actor.user_id)
        if not user:
            raise NotFound("User not found")
        return UserResponse.model_validate(user)
