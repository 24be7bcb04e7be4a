from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
import logging
import traceback

from app.core.exceptions import BrokerageError, to_http_exception
from app.db.session import get_db
from app.dependencies import Actor, require_roles
from app.schemas.calendar import CalendarEventCreateRequest, CalendarEventUpdateRequest, CalendarEventResponse
from app.schemas.common import MessageResponse, Page
from app.services.calendar_services import CalendarServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/calendar", tags=["Calendar"])


@router.get(
    "",
    response_model=Page[CalendarEventResponse],
    summary="List calendar events",
    description="Agents get their own events; admins get everyone's, optionally filtered by agent."
)
async def list_events(
    agent_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CalendarServices.list_events_service(actor, db, agent_id=agent_id, page=page, limit=limit)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in list_events: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get("/agent/{agent_id}", response_model=Page[CalendarEventResponse], summary="Events of one agent")
async def list_agent_events(
    agent_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CalendarServices.list_events_service(actor, db, agent_id=agent_id, page=page, limit=limit)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in list_agent_events: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post(
    "",
    response_model=CalendarEventResponse,
    status_code=201,
    summary="Schedule an event",
    description="Rejects events within 30 minutes of another event of the same agent. "
                "A viewing linked to an inquiry moves that inquiry to viewing-scheduled."
)
async def create_event(
    request: CalendarEventCreateRequest,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CalendarServices.create_event_service(request, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in create_event: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.put("/{event_id}", response_model=CalendarEventResponse, summary="Edit or reschedule an event")
async def update_event(
    event_id: UUID,
    request: CalendarEventUpdateRequest,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CalendarServices.update_event_service(event_id, request, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in update_event: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.delete("/{event_id}", response_model=MessageResponse, summary="Delete an event")
async def delete_event(
    event_id: UUID,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        await CalendarServices.delete_event_service(event_id, actor, db)
        return MessageResponse(message="Event deleted")
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in delete_event: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})
