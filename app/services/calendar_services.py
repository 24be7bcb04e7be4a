from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, time, timedelta
from typing import List, Optional
import logging

from app.config import settings
from app.core.exceptions import NotFound, PermissionDenied, ScheduleConflict, ValidationFailed
from app.crud import calendar_event as crud_event
from app.crud import inquiry as crud_inquiry
from app.crud import user as crud_user
from app.db.base_class import utcnow, to_utc_naive, to_business_time
from app.dependencies import Actor
from app.models.calendar_event import CalendarEvent
from app.schemas.calendar import CalendarEventCreateRequest, CalendarEventUpdateRequest, CalendarEventResponse
from app.schemas.common import Page
from app.services.activity_logger import ActivityLogger
from app.services.inquiry_services import InquiryServices
from app.services.validation import sanitize_text

logger = logging.getLogger(__name__)


class ScheduleConflictChecker:
    """
        Detects overlapping commitments for one agent.

        A window [start, end] conflicts with an existing event of the same agent when

            existing.start < end + buffer  and  existing.end > start - buffer

        i.e. the two intervals overlap once each is padded by the buffer. The relation is
        symmetric. Conflicts are reported, never resolved by moving either event.
    """

    def __init__(self, db: AsyncSession, buffer_minutes: Optional[int] = None):
        self.db = db
        minutes = settings.SCHEDULE_BUFFER_MINUTES if buffer_minutes is None else buffer_minutes
        self.buffer = timedelta(minutes=minutes)

    async def find_conflicts(
        self,
        agent_id: UUID,
        start: datetime,
        end: datetime,
        exclude_event_id: Optional[UUID] = None,
    ) -> List[CalendarEvent]:
        return await crud_event.get_overlapping_events(
            self.db,
            agent_id,
            window_start=start - self.buffer,
            window_end=end + self.buffer,
            exclude_event_id=exclude_event_id,
        )

    async def ensure_free(
        self,
        agent_id: UUID,
        start: datetime,
        end: datetime,
        exclude_event_id: Optional[UUID] = None,
    ) -> None:
        conflicts = await self.find_conflicts(agent_id, start, end, exclude_event_id)
        if conflicts:
            nearby = conflicts[0]
            minutes = int(self.buffer.total_seconds() // 60)
            raise ScheduleConflict(
                f"Schedule conflict: You have another event within {minutes} minutes of this time",
                conflicting_event={
                    "event_id": str(nearby.event_id),
                    "title": nearby.title,
                    "start": nearby.start_time.isoformat(),
                    "end": nearby.end_time.isoformat(),
                },
            )


class CalendarServices:

    @staticmethod
    def validate_window(start: datetime, end: datetime, event_type: str, now: Optional[datetime] = None) -> None:
        """
        Server-side scheduling rules (all datetimes naive UTC):
            - end must be after start
            - start must be in the future
            - viewings must sit inside business hours on a single local day
        """
        now = now or utcnow()

        if end <= start:
            raise ValidationFailed("End time must be after start time", fields={"end": "Must be after start"})
        if start <= now:
            raise ValidationFailed("Cannot schedule events in the past", fields={"start": "Must be in the future"})

        if event_type == "viewing":
            local_start = to_business_time(start)
            local_end = to_business_time(end)
            opens = time(settings.BUSINESS_HOURS_START)
            closes = time(settings.BUSINESS_HOURS_END)
            if (
                local_start.date() != local_end.date()
                or local_start.time() < opens
                or local_end.time() > closes
            ):
                raise ValidationFailed(
                    f"Viewings must be scheduled between {opens:%H:%M} and {closes:%H:%M}",
                    fields={"start": "Outside business hours"},
                )

    @staticmethod
    async def create_event_service(
        request: CalendarEventCreateRequest,
        actor: Actor,
        db: AsyncSession,
    ) -> CalendarEventResponse:

        """
        Schedule an event for an agent.

        Workflow:
        1. Resolve the owning agent: agents schedule for themselves, admins name the agent.
        2. Validate the time window (order, future, business hours for viewings).
        3. Run the conflict checker for that agent.
        4. A viewing linked to an inquiry moves the inquiry to `viewing-scheduled` and appends
           "Viewing scheduled for {date} at {time}" (local time) in the same transaction.
        5. Insert the event, log CREATE_EVENT, commit.

        Raises:
            PermissionDenied: an agent scheduling for someone else, or linking an inquiry they do not hold.
            NotFound: unknown agent or inquiry.
            ValidationFailed: bad window, or the linked inquiry cannot move to viewing-scheduled.
            ScheduleConflict: another event of the agent is within the buffer.
        """

        # 1. --- Owner ---
        agent_id = await CalendarServices._resolve_owner(db, actor, request.agent_id)

        # 2. --- Window ---
        start = to_utc_naive(request.start)
        end = to_utc_naive(request.end)
        CalendarServices.validate_window(start, end, request.type)

        # 3. --- Conflicts ---
        await ScheduleConflictChecker(db).ensure_free(agent_id, start, end)

        title = sanitize_text(request.title)

        # 4. --- Linked inquiry ---
        if request.inquiry_id is not None and request.type == "viewing":
            inquiry = await crud_inquiry.get_inquiry_by_id(db, request.inquiry_id)
            if not inquiry:
                raise NotFound("Inquiry not found")
            if not actor.is_admin and inquiry.assigned_to != actor.user_id:
                raise PermissionDenied("You can only schedule viewings for inquiries you hold")

            local_start = to_business_time(start)
            await InquiryServices.apply_status_change(
                db,
                inquiry,
                "viewing-scheduled",
                actor,
                note=f"Viewing scheduled for {local_start:%Y-%m-%d} at {local_start:%H:%M}",
            )
            if not title:
                title = f"Property viewing - {inquiry.name}"

        # 5. --- Insert ---
        event = await crud_event.create_event(
            db,
            {
                "title": title or request.type.capitalize(),
                "description": sanitize_text(request.description),
                "start_time": start,
                "end_time": end,
                "agent_id": agent_id,
                "inquiry_id": request.inquiry_id,
                "type": request.type,
                "created_by": actor.name,
            },
        )
        await ActivityLogger.record(
            db, "CREATE_EVENT", f"Scheduled {event.type} '{event.title}' at {start.isoformat()}", actor,
        )
        await db.commit()

        logger.info("Event %s scheduled for agent %s", event.event_id, agent_id)
        return CalendarEventResponse.model_validate(event)

    @staticmethod
    async def update_event_service(
        event_id: UUID,
        request: CalendarEventUpdateRequest,
        actor: Actor,
        db: AsyncSession,
    ) -> CalendarEventResponse:
        """Edit or reschedule; the event itself is excluded from its own conflict check."""

        event = await CalendarServices._get_owned_event(db, event_id, actor)

        values = {}
        if request.title is not None:
            values["title"] = sanitize_text(request.title)
        if request.description is not None:
            values["description"] = sanitize_text(request.description)
        if request.type is not None:
            values["type"] = request.type

        start = to_utc_naive(request.start) if request.start is not None else event.start_time
        end = to_utc_naive(request.end) if request.end is not None else event.end_time
        rescheduled = start != event.start_time or end != event.end_time

        if rescheduled or "type" in values:
            CalendarServices.validate_window(start, end, values.get("type", event.type))
        if rescheduled:
            await ScheduleConflictChecker(db).ensure_free(event.agent_id, start, end, exclude_event_id=event.event_id)
            values["start_time"] = start
            values["end_time"] = end

        event = await crud_event.update_event(db, event, values)
        await ActivityLogger.record(db, "UPDATE_EVENT", f"Updated event '{event.title}'", actor)
        await db.commit()

        return CalendarEventResponse.model_validate(event)

    @staticmethod
    async def delete_event_service(event_id: UUID, actor: Actor, db: AsyncSession) -> None:
        event = await CalendarServices._get_owned_event(db, event_id, actor)

        title = event.title
        db.expunge(event)
        await crud_event.delete_event(db, event_id)
        await ActivityLogger.record(db, "DELETE_EVENT", f"Deleted event '{title}'", actor)
        await db.commit()

    @staticmethod
    async def list_events_service(
        actor: Actor,
        db: AsyncSession,
        agent_id: Optional[UUID] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page[CalendarEventResponse]:
        if not actor.is_admin:
            if agent_id is not None and agent_id != actor.user_id:
                raise PermissionDenied("Agents can only view their own calendar")
            agent_id = actor.user_id

        total, rows = await crud_event.list_events(db, page=page, limit=limit, agent_id=agent_id)
        return Page[CalendarEventResponse].build(
            [CalendarEventResponse.model_validate(row) for row in rows], total, page, limit,
        )

    @staticmethod
    async def _resolve_owner(db: AsyncSession, actor: Actor, agent_id: Optional[UUID]) -> UUID:
        if not actor.is_admin:
            if agent_id is not None and agent_id != actor.user_id:
                raise PermissionDenied("Agents can only manage their own calendar")
            return actor.user_id

        if agent_id is None:
            raise ValidationFailed("Agent is required", fields={"agent_id": "Select the agent for this event"})
        agent = await crud_user.get_agent_by_id(db, agent_id)
        if not agent:
            raise NotFound("Agent not found")
        return agent.user_id

    @staticmethod
    async def _get_owned_event(db: AsyncSession, event_id: UUID, actor: Actor) -> CalendarEvent:
        event = await crud_event.get_event_by_id(db, event_id)
        if not event:
            raise NotFound("Event not found")
        if not actor.is_admin and event.agent_id != actor.user_id:
            raise PermissionDenied("Agents can only manage their own calendar")
        return event
