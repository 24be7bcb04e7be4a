from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from typing import List, Optional
from uuid import UUID
import logging
import traceback

from app.core.exceptions import BrokerageError, to_http_exception
from app.db.redis_client import get_redis
from app.db.session import get_db
from app.dependencies import Actor, get_optional_actor, require_roles
from app.schemas.common import MessageResponse, Page
from app.schemas.property import (
    PropertyCreateRequest,
    PropertyStatusUpdateRequest,
    PropertyReserveRequest,
    PropertyResponse,
    PropertyStatus,
    ReleasedReservationsResponse,
    StatusHistoryItem,
)
from app.services.property_services import PropertyServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/properties", tags=["Properties"])


@router.get(
    "",
    response_model=Page[PropertyResponse],
    summary="List properties",
    description="Public callers never see drafts; signed-in staff see every status."
)
async def list_properties(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[PropertyStatus] = Query(None),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await PropertyServices.list_properties_service(db, actor, page=page, limit=limit, status=status)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in list_properties: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post(
    "/reservations/release-expired",
    response_model=ReleasedReservationsResponse,
    summary="Release expired reservations",
    description="Returns every lapsed reservation to available. Also runs automatically before property reads."
)
async def release_expired_reservations(
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        released = await PropertyServices.release_expired_reservations(db)
        return ReleasedReservationsResponse(released=released)
    except Exception as e:
        logger.error("Error in release_expired_reservations: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get("/{property_id}", response_model=PropertyResponse, summary="Get a property")
async def get_property(
    property_id: UUID,
    http_request: Request,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        ip_address = http_request.client.host if http_request.client else None
        return await PropertyServices.get_property_service(property_id, db, actor=actor, ip_address=ip_address)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in get_property: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get("/{property_id}/history", response_model=List[StatusHistoryItem], summary="Status history")
async def get_property_history(
    property_id: UUID,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await PropertyServices.get_history_service(property_id, db, actor=actor)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in get_property_history: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=201,
    summary="Create a property",
    description="Admins publish directly; agent listings start as drafts unless `publish` is set."
)
async def create_property(
    request: PropertyCreateRequest,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await PropertyServices.create_property_service(request, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in create_property: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.put(
    "/{property_id}/status",
    response_model=PropertyResponse,
    summary="Change property status",
    description="Validated against the status lifecycle. `sold` records the sale and its commission."
)
async def change_property_status(
    property_id: UUID,
    request: PropertyStatusUpdateRequest,
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    try:
        return await PropertyServices.change_status_service(property_id, request, actor, db, redis)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in change_property_status: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post("/{property_id}/reserve", response_model=PropertyResponse, summary="Reserve a property for an agent")
async def reserve_property(
    property_id: UUID,
    request: PropertyReserveRequest,
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await PropertyServices.reserve_property_service(property_id, request.agent_id, request.hours, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in reserve_property: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post("/{property_id}/commission/pay", response_model=PropertyResponse, summary="Mark commission as paid")
async def pay_commission(
    property_id: UUID,
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    try:
        return await PropertyServices.pay_commission_service(property_id, actor, db, redis)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in pay_commission: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.delete("/{property_id}", response_model=MessageResponse, summary="Delete a property")
async def delete_property(
    property_id: UUID,
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        await PropertyServices.delete_property_service(property_id, actor, db)
        return MessageResponse(message="Property deleted")
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in delete_property: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})
