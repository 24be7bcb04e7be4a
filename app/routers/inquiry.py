from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
import logging
import traceback

from app.core.exceptions import BrokerageError, to_http_exception
from app.db.session import get_db
from app.dependencies import Actor, require_roles
from app.schemas.common import MessageResponse, Page
from app.schemas.inquiry import (
    InquiryCreateRequest,
    InquiryAssignRequest,
    InquiryStatusUpdateRequest,
    InquiryNoteCreateRequest,
    FollowUpReminderCreateRequest,
    InquiryResponse,
    InquiryStatus,
)
from app.services.inquiry_services import InquiryServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/inquiries", tags=["Inquiries"])


@router.post(
    "",
    response_model=InquiryResponse,
    status_code=201,
    summary="Submit an inquiry",
    description="Public endpoint. Validates and sanitises the submission, rejects open duplicates and issues a ticket number."
)
async def create_inquiry(
    request: InquiryCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.create_inquiry_service(request, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in create_inquiry: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get(
    "",
    response_model=Page[InquiryResponse],
    summary="List inquiries",
    description="Admins see every inquiry; agents see their own plus unassigned ones."
)
async def list_inquiries(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[InquiryStatus] = Query(None),
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.list_inquiries_service(actor, db, page=page, limit=limit, status=status)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in list_inquiries: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get("/{inquiry_id}", response_model=InquiryResponse, summary="Get an inquiry")
async def get_inquiry(
    inquiry_id: UUID,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.get_inquiry_service(inquiry_id, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in get_inquiry: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post(
    "/{inquiry_id}/claim",
    response_model=InquiryResponse,
    summary="Claim an inquiry",
    description="Atomically takes an unassigned inquiry. Returns 409 when another agent got there first."
)
async def claim_inquiry(
    inquiry_id: UUID,
    actor: Actor = Depends(require_roles("agent")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.claim_inquiry_service(inquiry_id, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in claim_inquiry: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post("/{inquiry_id}/assign", response_model=InquiryResponse, summary="Assign or reassign an inquiry")
async def assign_inquiry(
    inquiry_id: UUID,
    request: InquiryAssignRequest,
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.assign_inquiry_service(inquiry_id, request, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in assign_inquiry: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.put(
    "/{inquiry_id}/status",
    response_model=InquiryResponse,
    summary="Update inquiry status",
    description="Moves the inquiry along its lifecycle and optionally appends a note."
)
async def update_inquiry_status(
    inquiry_id: UUID,
    request: InquiryStatusUpdateRequest,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.update_status_service(inquiry_id, request, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in update_inquiry_status: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post("/{inquiry_id}/notes", response_model=InquiryResponse, status_code=201, summary="Add a note")
async def add_inquiry_note(
    inquiry_id: UUID,
    request: InquiryNoteCreateRequest,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.add_note_service(inquiry_id, request, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in add_inquiry_note: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.post("/{inquiry_id}/reminders", response_model=InquiryResponse, status_code=201, summary="Add a follow-up reminder")
async def add_follow_up_reminder(
    inquiry_id: UUID,
    request: FollowUpReminderCreateRequest,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.add_reminder_service(inquiry_id, request, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in add_follow_up_reminder: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.put(
    "/{inquiry_id}/reminders/{reminder_id}/complete",
    response_model=InquiryResponse,
    summary="Complete a follow-up reminder",
)
async def complete_follow_up_reminder(
    inquiry_id: UUID,
    reminder_id: UUID,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await InquiryServices.complete_reminder_service(inquiry_id, reminder_id, actor, db)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in complete_follow_up_reminder: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.delete("/{inquiry_id}", response_model=MessageResponse, summary="Delete an inquiry")
async def delete_inquiry(
    inquiry_id: UUID,
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        await InquiryServices.delete_inquiry_service(inquiry_id, actor, db)
        return MessageResponse(message="Inquiry deleted")
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in delete_inquiry: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})
