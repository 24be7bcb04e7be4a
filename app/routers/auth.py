from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import traceback

from app.core.exceptions import BrokerageError, to_http_exception
from app.db.session import get_db
from app.dependencies import Actor, get_current_actor
from app.schemas.auth import LoginRequest, LoginResponse, UserResponse
from app.services.auth_services import AuthServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Sign in",
    description="Exchanges email and password for a bearer token. Failed attempts are recorded in the activity log."
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await AuthServices.login_service(request, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in login: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get("/me", response_model=UserResponse, summary="Current user")
async def me(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await AuthServices.get_me_service(actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in me: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})
