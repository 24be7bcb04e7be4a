from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from datetime import timedelta
from typing import Optional
import logging

from app.config import settings
from app.core.exceptions import (
    AlreadyClaimed,
    ConflictError,
    DuplicateInquiry,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from app.crud import inquiry as crud_inquiry
from app.crud import property as crud_property
from app.crud import user as crud_user
from app.db.base_class import utcnow, to_utc_naive, to_business_time
from app.dependencies import Actor
from app.models.inquiry import Inquiry
from app.schemas.common import Page
from app.schemas.inquiry import (
    InquiryCreateRequest,
    InquiryAssignRequest,
    InquiryStatusUpdateRequest,
    InquiryNoteCreateRequest,
    FollowUpReminderCreateRequest,
    InquiryResponse,
)
from app.services.activity_logger import ActivityLogger
from app.services.ticket_allocator import TicketAllocator
from app.services.validation import (
    contains_malicious_content,
    normalize_phone,
    sanitize_text,
    validate_inquiry_fields,
)

logger = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3

# claimed / assigned are entered only through claim and assign
INQUIRY_TRANSITIONS = {
    "new": ("contacted", "in-progress", "no-response", "deal-cancelled"),
    "claimed": ("contacted", "in-progress", "viewing-scheduled", "negotiating", "no-response", "deal-cancelled"),
    "assigned": ("contacted", "in-progress", "viewing-scheduled", "negotiating", "no-response", "deal-cancelled"),
    "contacted": ("in-progress", "viewing-scheduled", "negotiating", "no-response", "deal-cancelled"),
    "in-progress": ("contacted", "viewing-scheduled", "negotiating", "no-response", "deal-cancelled"),
    "viewing-scheduled": (
        "negotiating", "viewed-interested", "viewed-not-interested", "no-response", "deal-cancelled",
    ),
    "negotiating": (
        "viewing-scheduled", "viewed-interested", "viewed-not-interested", "deal-successful",
        "no-response", "deal-cancelled",
    ),
    "viewed-interested": ("viewing-scheduled", "negotiating", "deal-successful", "no-response", "deal-cancelled"),
    "viewed-not-interested": ("viewing-scheduled", "no-response", "deal-cancelled"),
    "deal-successful": (),
    "deal-cancelled": (),
    "no-response": (),
}


class InquiryServices:

    @staticmethod
    async def create_inquiry_service(request: InquiryCreateRequest, db: AsyncSession) -> InquiryResponse:

        """
        Accept a public inquiry.

        Workflow:
        1. Reject markup that looks like script injection and record an XSS_ATTEMPT security event.
        2. Sanitise free text (trim, strip angle brackets) and validate email, phone and message.
        3. Refuse a second open inquiry for the same email + property inside the duplicate window
           (DUPLICATE_INQUIRY security event).
        4. Allocate the ticket number and insert the inquiry in one transaction, together with the
           CREATE_INQUIRY activity entry.
        5. If the insert collides on the ticket number (two first-of-year allocations racing),
           roll back and run steps 3-4 again, up to MAX_CREATE_ATTEMPTS times.

        Raises:
            ValidationFailed: malicious content or invalid fields (with a field -> message map).
            DuplicateInquiry: an open inquiry for the same email/property already exists.
        """

        # 1. --- Injection guard ---
        if contains_malicious_content(request.name, request.message):
            await ActivityLogger.record_security_event(
                db,
                "XSS_ATTEMPT",
                f"Malicious content detected in inquiry submission from {request.email}",
            )
            raise ValidationFailed("Invalid content detected")

        # 2. --- Sanitise + validate ---
        name = sanitize_text(request.name) or ""
        email = (sanitize_text(request.email) or "").lower()
        phone = sanitize_text(request.phone) or ""
        message = sanitize_text(request.message) or ""

        errors = validate_inquiry_fields(name, email, phone, message)
        if errors:
            raise ValidationFailed("Validation failed", fields=errors)

        inquiry_data = {
            "name": name,
            "email": email,
            "phone": normalize_phone(phone),
            "message": message,
            "property_id": request.property_id,
            "property_title": sanitize_text(request.property_title),
            "property_price": request.property_price,
            "property_location": sanitize_text(request.property_location),
        }

        # Snapshot the listing as it is right now; drafts are not public
        if request.property_id is not None:
            listing = await crud_property.get_property_by_id(db, request.property_id)
            if listing is not None and listing.status == "draft":
                raise NotFound("Property not found")
            if listing is not None:
                inquiry_data["property_title"] = listing.title
                inquiry_data["property_price"] = listing.price
                inquiry_data["property_location"] = listing.location

        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            now = utcnow()

            # 3. --- Duplicate guard ---
            since = now - timedelta(days=settings.DUPLICATE_WINDOW_DAYS)
            duplicate = await crud_inquiry.get_recent_open_duplicate(db, email, request.property_id, since)
            if duplicate:
                existing_ticket = duplicate.ticket_number
                submitted_at = duplicate.created_at.isoformat()
                await ActivityLogger.record_security_event(
                    db,
                    "DUPLICATE_INQUIRY",
                    f"Duplicate inquiry from {email} for property {request.property_id} "
                    f"(existing ticket {existing_ticket})",
                )
                raise DuplicateInquiry(
                    "You have already submitted an inquiry for this property",
                    existing_ticket=existing_ticket,
                    submitted_at=submitted_at,
                )

            # 4. --- Ticket + insert in one unit ---
            try:
                ticket_number = await TicketAllocator.next_ticket(db, to_business_time(now).year)
                inquiry = await crud_inquiry.create_inquiry(db, inquiry_data, ticket_number, now)
                await ActivityLogger.record(
                    db,
                    "CREATE_INQUIRY",
                    f"Created inquiry {ticket_number} from {name}"
                    + (f" for {inquiry_data['property_title']}" if inquiry_data["property_title"] else ""),
                )
                await db.commit()
            except IntegrityError as e:
                # 5. --- Concurrent allocation: start over ---
                await db.rollback()
                if attempt == MAX_CREATE_ATTEMPTS:
                    raise
                logger.warning("Ticket allocation collided (attempt %s): %s", attempt, e)
                continue

            logger.info("Inquiry %s created", ticket_number)
            created = await crud_inquiry.get_inquiry_by_id(db, inquiry.inquiry_id, refresh=True)
            return InquiryResponse.model_validate(created)

    @staticmethod
    async def claim_inquiry_service(inquiry_id: UUID, actor: Actor, db: AsyncSession) -> InquiryResponse:

        """
        Claim an unassigned inquiry for the acting agent.

        The write is a single conditional UPDATE (assigned_to IS NULL and not closed), so of two
        agents racing for the same ticket exactly one sees a changed row. The loser gets a conflict
        and nothing is modified.

        Raises:
            NotFound: no such inquiry.
            ConflictError: closed inquiry, or the linked property is reserved for another agent.
            AlreadyClaimed: someone else holds the inquiry.
        """

        inquiry = await crud_inquiry.get_inquiry_by_id(db, inquiry_id)
        if not inquiry:
            raise NotFound("Inquiry not found")

        # --- Property held for someone else ---
        now = utcnow()
        if inquiry.property_id is not None:
            listing = await crud_property.get_property_by_id(db, inquiry.property_id)
            if (
                listing is not None
                and listing.status == "reserved"
                and listing.reserved_until is not None
                and listing.reserved_until > now
                and listing.reserved_by_agent_id != actor.user_id
            ):
                raise ConflictError(
                    "Property is reserved for another agent",
                    reserved_by=listing.reserved_by,
                    reserved_until=listing.reserved_until.isoformat(),
                )

        # --- Compare-and-set ---
        claimed = await crud_inquiry.claim_if_unassigned(db, inquiry_id, actor.user_id, now)
        if not claimed:
            current = await crud_inquiry.get_inquiry_by_id(db, inquiry_id, refresh=True)
            if current is None:
                raise NotFound("Inquiry not found")
            if current.is_closed:
                raise ConflictError("Inquiry is already closed", status=current.status)
            logger.info("Claim of %s by %s lost the race", current.ticket_number, actor.user_id)
            raise AlreadyClaimed("Ticket already claimed by another agent")

        await ActivityLogger.record(db, "CLAIM_INQUIRY", f"Claimed inquiry {inquiry.ticket_number}", actor)
        await db.commit()

        logger.info("Inquiry %s claimed by %s", inquiry.ticket_number, actor.name)
        claimed_inquiry = await crud_inquiry.get_inquiry_by_id(db, inquiry_id, refresh=True)
        return InquiryResponse.model_validate(claimed_inquiry)

    @staticmethod
    async def assign_inquiry_service(
        inquiry_id: UUID,
        request: InquiryAssignRequest,
        actor: Actor,
        db: AsyncSession,
    ) -> InquiryResponse:
        """Admin assignment; overrides any current holder and reopens a closed inquiry."""

        agent = await crud_user.get_agent_by_id(db, request.agent_id)
        if not agent:
            raise NotFound("Agent not found")

        inquiry = await crud_inquiry.get_inquiry_by_id(db, inquiry_id)
        if not inquiry:
            raise NotFound("Inquiry not found")

        previous_holder = inquiry.assigned_to
        agent_name = agent.name or request.agent_name

        await crud_inquiry.assign_inquiry(db, inquiry_id, agent.user_id, actor.user_id, utcnow())

        details = f"Assigned inquiry {inquiry.ticket_number} to {agent_name}"
        if previous_holder is not None and previous_holder != agent.user_id:
            previous = await crud_user.get_user_by_id(db, previous_holder)
            details += f" (previously {previous.name if previous else previous_holder})"
        await ActivityLogger.record(db, "ASSIGN_INQUIRY", details, actor)
        await db.commit()

        assigned = await crud_inquiry.get_inquiry_by_id(db, inquiry_id, refresh=True)
        return InquiryResponse.model_validate(assigned)

    @staticmethod
    async def apply_status_change(
        db: AsyncSession,
        inquiry: Inquiry,
        new_status: str,
        actor: Actor,
        note: Optional[str] = None,
    ) -> None:
        """
        Move an inquiry along the transition table and optionally append a note.
        Writes into the caller's transaction; the caller commits.
        """
        current = inquiry.status
        now = utcnow()

        if new_status != current:
            if new_status not in INQUIRY_TRANSITIONS.get(current, ()):
                raise ValidationFailed(
                    f"Cannot change inquiry status from {current} to {new_status}",
                    current_status=current,
                    requested_status=new_status,
                )
            changed = await crud_inquiry.update_status_if(db, inquiry.inquiry_id, current, new_status, now)
            if not changed:
                raise ConflictError("Inquiry was modified by another request, reload and retry")

        if note:
            await crud_inquiry.create_note(db, inquiry.inquiry_id, actor.user_id, actor.name, note, now)

        details = f"Updated inquiry {inquiry.ticket_number} status: {current} -> {new_status}"
        if note:
            details += " (with note)"
        await ActivityLogger.record(db, "UPDATE_INQUIRY", details, actor)

    @staticmethod
    async def update_status_service(
        inquiry_id: UUID,
        request: InquiryStatusUpdateRequest,
        actor: Actor,
        db: AsyncSession,
    ) -> InquiryResponse:

        """
        Change an inquiry's status, optionally with a note.

        Only the holding agent or an admin may act. The move must be allowed by
        INQUIRY_TRANSITIONS; keeping the same status is allowed and only appends the note.
        Entering a terminal status stamps closed_at.
        """

        inquiry = await InquiryServices._get_for_holder(db, inquiry_id, actor)
        note = sanitize_text(request.note)
        await InquiryServices.apply_status_change(db, inquiry, request.status, actor, note=note or None)
        await db.commit()

        updated = await crud_inquiry.get_inquiry_by_id(db, inquiry_id, refresh=True)
        return InquiryResponse.model_validate(updated)

    @staticmethod
    async def add_note_service(
        inquiry_id: UUID,
        request: InquiryNoteCreateRequest,
        actor: Actor,
        db: AsyncSession,
    ) -> InquiryResponse:
        inquiry = await InquiryServices._get_for_holder(db, inquiry_id, actor)

        note = sanitize_text(request.note)
        if not note:
            raise ValidationFailed("Note cannot be empty", fields={"note": "Note cannot be empty"})

        await crud_inquiry.create_note(db, inquiry_id, actor.user_id, actor.name, note, utcnow())
        await ActivityLogger.record(db, "ADD_INQUIRY_NOTE", f"Added note to inquiry {inquiry.ticket_number}", actor)
        await db.commit()

        updated = await crud_inquiry.get_inquiry_by_id(db, inquiry_id, refresh=True)
        return InquiryResponse.model_validate(updated)

    @staticmethod
    async def add_reminder_service(
        inquiry_id: UUID,
        request: FollowUpReminderCreateRequest,
        actor: Actor,
        db: AsyncSession,
    ) -> InquiryResponse:
        inquiry = await InquiryServices._get_for_holder(db, inquiry_id, actor)
        now = utcnow()

        await crud_inquiry.create_reminder(db, inquiry_id, to_utc_naive(request.due_at), sanitize_text(request.note))
        next_due = await crud_inquiry.get_next_open_due_at(db, inquiry_id)
        await crud_inquiry.update_follow_up_fields(db, inquiry, now, next_follow_up_at=next_due)

        await ActivityLogger.record(
            db,
            "ADD_FOLLOW_UP",
            f"Follow-up for inquiry {inquiry.ticket_number} due {to_utc_naive(request.due_at).isoformat()}",
            actor,
        )
        await db.commit()

        updated = await crud_inquiry.get_inquiry_by_id(db, inquiry_id, refresh=True)
        return InquiryResponse.model_validate(updated)

    @staticmethod
    async def complete_reminder_service(
        inquiry_id: UUID,
        reminder_id: UUID,
        actor: Actor,
        db: AsyncSession,
    ) -> InquiryResponse:
        inquiry = await InquiryServices._get_for_holder(db, inquiry_id, actor)

        reminder = await crud_inquiry.get_reminder(db, inquiry_id, reminder_id)
        if not reminder:
            raise NotFound("Reminder not found")

        now = utcnow()
        completed = await crud_inquiry.complete_reminder_if_open(db, reminder_id, now)
        if not completed:
            raise ConflictError("Reminder already completed")

        next_due = await crud_inquiry.get_next_open_due_at(db, inquiry_id)
        await crud_inquiry.update_follow_up_fields(
            db, inquiry, now, last_follow_up_at=now, next_follow_up_at=next_due,
        )
        await ActivityLogger.record(
            db, "COMPLETE_FOLLOW_UP", f"Completed follow-up for inquiry {inquiry.ticket_number}", actor,
        )
        await db.commit()

        updated = await crud_inquiry.get_inquiry_by_id(db, inquiry_id, refresh=True)
        return InquiryResponse.model_validate(updated)

    @staticmethod
    async def get_inquiry_service(inquiry_id: UUID, actor: Actor, db: AsyncSession) -> InquiryResponse:
        inquiry = await crud_inquiry.get_inquiry_by_id(db, inquiry_id)
        if not inquiry:
            raise NotFound("Inquiry not found")
        if not actor.is_admin and inquiry.assigned_to is not None and inquiry.assigned_to != actor.user_id:
            raise PermissionDenied("You do not have access to this inquiry")
        return InquiryResponse.model_validate(inquiry)

    @staticmethod
    async def list_inquiries_service(
        actor: Actor,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
    ) -> Page[InquiryResponse]:
        """Admins see everything; agents see their own plus the unclaimed pool."""
        total, rows = await crud_inquiry.list_inquiries(
            db,
            page=page,
            limit=limit,
            visible_to_agent=None if actor.is_admin else actor.user_id,
            status=status,
        )
        return Page[InquiryResponse].build(
            [InquiryResponse.model_validate(row) for row in rows], total, page, limit,
        )

    @staticmethod
    async def delete_inquiry_service(inquiry_id: UUID, actor: Actor, db: AsyncSession) -> None:
        inquiry = await crud_inquiry.get_inquiry_by_id(db, inquiry_id)
        if not inquiry:
            raise NotFound("Inquiry not found")

        ticket_number = inquiry.ticket_number
        db.expunge(inquiry)
        await crud_inquiry.delete_inquiry(db, inquiry_id)
        await ActivityLogger.record(db, "DELETE_INQUIRY", f"Deleted inquiry {ticket_number}", actor)
        await db.commit()
        logger.info("Inquiry %s deleted by %s", ticket_number, actor.name)

    @staticmethod
    async def _get_for_holder(db: AsyncSession, inquiry_id: UUID, actor: Actor) -> Inquiry:
        inquiry = await crud_inquiry.get_inquiry_by_id(db, inquiry_id)
        if not inquiry:
            raise NotFound("Inquiry not found")
        if not actor.is_admin and inquiry.assigned_to != actor.user_id:
            raise PermissionDenied("Only the agent holding this inquiry can update it")
        return inquiry