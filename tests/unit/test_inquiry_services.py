"""Tests for the inquiry lifecycle engine."""

import re
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from app.core.exceptions import (
    AlreadyClaimed,
    ConflictError,
    DuplicateInquiry,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from app.crud import inquiry as crud_inquiry
from app.db.base_class import to_business_time, utcnow
from app.models import ActivityLog, Inquiry
from app.schemas.inquiry import (
    FollowUpReminderCreateRequest,
    InquiryAssignRequest,
    InquiryCreateRequest,
    InquiryNoteCreateRequest,
    InquiryStatusUpdateRequest,
)
from app.schemas.property import PropertyCreateRequest
from app.services import inquiry_services
from app.services.inquiry_services import InquiryServices
from app.services.property_services import PropertyServices
from tests.utils.factories import create_inquiry_data, create_property_data


async def submit(db, **overrides):
    return await InquiryServices.create_inquiry_service(InquiryCreateRequest(**create_inquiry_data(**overrides)), db)


async def actions(db, action):
    result = await db.execute(select(ActivityLog).where(ActivityLog.action == action))
    return result.scalars().all()


# --- Create ---

@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_issues_ticket_and_starts_new(db):
    inquiry = await submit(db, email="Juan.Cruz@Example.com", phone="0917-123-4567")

    assert re.fullmatch(rf"INQ-{to_business_time(utcnow()).year}-\d{{3,}}", inquiry.ticket_number)
    assert inquiry.status == "new"
    assert inquiry.assigned_to is None
    assert inquiry.email == "juan.cruz@example.com"
    assert inquiry.phone == "09171234567"
    assert len(await actions(db, "CREATE_INQUIRY")) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_sanitises_free_text(db):
    inquiry = await submit(db, name="  Juan <b>Cruz</b> ")

    assert inquiry.name == "Juan bCruz/b"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_snapshots_listing(db, admin):
    listing = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data(title="Sunny Loft in Makati", price=7_500_000)), admin, db,
    )

    inquiry = await submit(db, property_id=listing.property_id, property_title="tampered")

    assert inquiry.property_title == "Sunny Loft in Makati"
    assert inquiry.property_price == 7_500_000


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_against_draft_listing_is_not_found(db, agent):
    draft = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data(title="Unreleased Penthouse")), agent, db,
    )

    with pytest.raises(NotFound):
        await submit(db, property_id=draft.property_id)

    assert (await db.execute(select(Inquiry))).scalars().all() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ticket_year_follows_business_timezone(db, monkeypatch):
    new_years_eve = datetime(2030, 12, 31, 17, 0)
    monkeypatch.setattr(inquiry_services, "utcnow", lambda: new_years_eve)

    inquiry = await submit(db)

    assert to_business_time(new_years_eve).year == 2031
    assert inquiry.ticket_number == "INQ-2031-001"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_xss_attempt_rejected_and_logged(db):
    """Test script markup is refused and the attempt is committed to the activity log."""
    with pytest.raises(ValidationFailed):
        await submit(db, message="<script>alert('x')</script> please call me back")

    assert len(await actions(db, "XSS_ATTEMPT")) == 1
    assert (await db.execute(select(Inquiry))).scalars().all() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_fields_reported_together(db):
    with pytest.raises(ValidationFailed) as exc_info:
        await submit(db, email="nope", phone="123", message="short")

    assert set(exc_info.value.fields) == {"email", "phone", "message"}
    assert exc_info.value.to_detail()["fields"]["phone"]


# --- Duplicate guard ---

@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_within_window_rejected(db, admin):
    listing = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data()), admin, db,
    )
    first = await submit(db, email="ana@example.com", property_id=listing.property_id)

    with pytest.raises(DuplicateInquiry) as exc_info:
        await submit(db, email="ANA@example.com", property_id=listing.property_id)

    detail = exc_info.value.to_detail()
    assert detail["existing_ticket"] == first.ticket_number
    assert detail["submitted_at"]
    assert len(await actions(db, "DUPLICATE_INQUIRY")) == 1
    assert len((await db.execute(select(Inquiry))).scalars().all()) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_allowed_for_other_property(db, admin):
    first_listing = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data()), admin, db,
    )
    second_listing = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data()), admin, db,
    )

    await submit(db, email="ana@example.com", property_id=first_listing.property_id)
    second = await submit(db, email="ana@example.com", property_id=second_listing.property_id)

    assert second.status == "new"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_allowed_after_window(db, admin):
    """Test an inquiry older than seven days no longer blocks a new one."""
    listing = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data()), admin, db,
    )
    first = await submit(db, email="ana@example.com", property_id=listing.property_id)

    await db.execute(
        update(Inquiry)
        .where(Inquiry.inquiry_id == first.inquiry_id)
        .values(created_at=utcnow() - timedelta(days=8))
    )
    await db.commit()

    second = await submit(db, email="ana@example.com", property_id=listing.property_id)
    assert second.ticket_number != first.ticket_number


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_allowed_when_previous_closed(db, admin, agent):
    listing = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data()), admin, db,
    )
    first = await submit(db, email="ana@example.com", property_id=listing.property_id)
    await InquiryServices.claim_inquiry_service(first.inquiry_id, agent, db)
    await InquiryServices.update_status_service(
        first.inquiry_id, InquiryStatusUpdateRequest(status="no-response"), agent, db,
    )

    second = await submit(db, email="ana@example.com", property_id=listing.property_id)
    assert second.status == "new"


# --- Claim ---

@pytest.mark.unit
@pytest.mark.asyncio
async def test_claim_sets_holder(db, agent):
    inquiry = await submit(db)

    claimed = await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    assert claimed.status == "claimed"
    assert claimed.assigned_to == agent.user_id
    assert claimed.claimed_by == agent.user_id
    assert claimed.claimed_at is not None
    assert len(await actions(db, "CLAIM_INQUIRY")) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_claim_conflicts(db, agent, other_agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    with pytest.raises(AlreadyClaimed, match="Ticket already claimed by another agent"):
        await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, other_agent, db)

    current = await crud_inquiry.get_inquiry_by_id(db, inquiry.inquiry_id, refresh=True)
    assert current.assigned_to == agent.user_id
    assert len(await actions(db, "CLAIM_INQUIRY")) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_claim_race_has_single_winner(db, session_factory, agent, other_agent):
    """Test two sessions that both saw the inquiry unassigned: exactly one claim lands."""
    inquiry = await submit(db)

    async with session_factory() as first_session, session_factory() as second_session:
        seen_first = await crud_inquiry.get_inquiry_by_id(first_session, inquiry.inquiry_id)
        seen_second = await crud_inquiry.get_inquiry_by_id(second_session, inquiry.inquiry_id)
        assert seen_first.assigned_to is None and seen_second.assigned_to is None

        winner = await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, first_session)
        with pytest.raises(AlreadyClaimed):
            await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, other_agent, second_session)

    assert winner.assigned_to == agent.user_id
    current = await crud_inquiry.get_inquiry_by_id(db, inquiry.inquiry_id, refresh=True)
    assert current.assigned_to == agent.user_id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_claim_missing_inquiry(db, agent):
    with pytest.raises(NotFound):
        await InquiryServices.claim_inquiry_service(uuid4(), agent, db)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_claim_blocked_by_reservation_for_other_agent(db, admin, agent, other_agent):
    listing = await PropertyServices.create_property_service(
        PropertyCreateRequest(**create_property_data()), admin, db,
    )
    await PropertyServices.reserve_property_service(listing.property_id, other_agent.user_id, 24, admin, db)
    inquiry = await submit(db, property_id=listing.property_id)

    with pytest.raises(ConflictError, match="reserved"):
        await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    claimed = await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, other_agent, db)
    assert claimed.assigned_to == other_agent.user_id


# --- Assign ---

@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_overrides_holder(db, admin, agent, other_agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    assigned = await InquiryServices.assign_inquiry_service(
        inquiry.inquiry_id, InquiryAssignRequest(agent_id=other_agent.user_id), admin, db,
    )

    assert assigned.status == "assigned"
    assert assigned.assigned_to == other_agent.user_id
    assert assigned.assigned_by == admin.user_id
    log = (await actions(db, "ASSIGN_INQUIRY"))[0]
    assert agent.name in log.details and other_agent.name in log.details


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_requires_agent_user(db, admin):
    inquiry = await submit(db)

    with pytest.raises(NotFound, match="Agent"):
        await InquiryServices.assign_inquiry_service(
            inquiry.inquiry_id, InquiryAssignRequest(agent_id=admin.user_id), admin, db,
        )


# --- Status transitions ---

@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_update_with_note(db, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    updated = await InquiryServices.update_status_service(
        inquiry.inquiry_id, InquiryStatusUpdateRequest(status="contacted", note="Called, asked for docs"), agent, db,
    )

    assert updated.status == "contacted"
    assert [note.note for note in updated.notes] == ["Called, asked for docs"]
    assert updated.notes[0].agent_name == agent.name


@pytest.mark.unit
@pytest.mark.asyncio
async def test_illegal_transition_leaves_inquiry_untouched(db, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    with pytest.raises(ValidationFailed):
        await InquiryServices.update_status_service(
            inquiry.inquiry_id, InquiryStatusUpdateRequest(status="deal-successful", note="skip"), agent, db,
        )

    current = await crud_inquiry.get_inquiry_by_id(db, inquiry.inquiry_id, refresh=True)
    assert current.status == "claimed"
    assert current.notes == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_claimed_only_reachable_by_claim(db, admin):
    inquiry = await submit(db)

    with pytest.raises(ValidationFailed):
        await InquiryServices.update_status_service(
            inquiry.inquiry_id, InquiryStatusUpdateRequest(status="claimed"), admin, db,
        )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_terminal_status_closes_and_freezes(db, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    closed = await InquiryServices.update_status_service(
        inquiry.inquiry_id, InquiryStatusUpdateRequest(status="deal-cancelled"), agent, db,
    )
    assert closed.closed_at is not None

    with pytest.raises(ValidationFailed):
        await InquiryServices.update_status_service(
            inquiry.inquiry_id, InquiryStatusUpdateRequest(status="contacted"), agent, db,
        )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_same_status_only_adds_note(db, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    updated = await InquiryServices.update_status_service(
        inquiry.inquiry_id, InquiryStatusUpdateRequest(status="claimed", note="Left a voicemail"), agent, db,
    )

    assert updated.status == "claimed"
    assert len(updated.notes) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_holder_updates(db, agent, other_agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    with pytest.raises(PermissionDenied):
        await InquiryServices.update_status_service(
            inquiry.inquiry_id, InquiryStatusUpdateRequest(status="contacted"), other_agent, db,
        )


# --- Notes & follow-ups ---

@pytest.mark.unit
@pytest.mark.asyncio
async def test_notes_append_in_order(db, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)

    await InquiryServices.add_note_service(inquiry.inquiry_id, InquiryNoteCreateRequest(note="First"), agent, db)
    updated = await InquiryServices.add_note_service(
        inquiry.inquiry_id, InquiryNoteCreateRequest(note="Second"), agent, db,
    )

    assert [note.note for note in updated.notes] == ["First", "Second"]
    assert len(await actions(db, "ADD_INQUIRY_NOTE")) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_note_refreshes_updated_at(db, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)
    stale = utcnow() - timedelta(days=2)
    await db.execute(update(Inquiry).where(Inquiry.inquiry_id == inquiry.inquiry_id).values(updated_at=stale))
    await db.commit()

    await InquiryServices.add_note_service(inquiry.inquiry_id, InquiryNoteCreateRequest(note="Sent floor plan"), agent, db)

    current = await crud_inquiry.get_inquiry_by_id(db, inquiry.inquiry_id, refresh=True)
    assert current.updated_at > stale


@pytest.mark.unit
@pytest.mark.asyncio
async def test_follow_up_reminders_track_next_and_last(db, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)
    now = utcnow().replace(microsecond=0)

    await InquiryServices.add_reminder_service(
        inquiry.inquiry_id, FollowUpReminderCreateRequest(due_at=now + timedelta(days=3)), agent, db,
    )
    updated = await InquiryServices.add_reminder_service(
        inquiry.inquiry_id, FollowUpReminderCreateRequest(due_at=now + timedelta(days=1), note="Call back"), agent, db,
    )
    assert updated.next_follow_up_at == now + timedelta(days=1)

    earliest = updated.reminders[0]
    completed = await InquiryServices.complete_reminder_service(inquiry.inquiry_id, earliest.reminder_id, agent, db)

    assert completed.next_follow_up_at == now + timedelta(days=3)
    assert completed.last_follow_up_at is not None
    assert completed.reminders[0].completed is True

    with pytest.raises(ConflictError):
        await InquiryServices.complete_reminder_service(inquiry.inquiry_id, earliest.reminder_id, agent, db)


# --- Visibility ---

@pytest.mark.unit
@pytest.mark.asyncio
async def test_agent_sees_own_and_unassigned(db, admin, agent, other_agent):
    mine = await submit(db)
    theirs = await submit(db)
    pool = await submit(db)
    await InquiryServices.claim_inquiry_service(mine.inquiry_id, agent, db)
    await InquiryServices.claim_inquiry_service(theirs.inquiry_id, other_agent, db)

    page = await InquiryServices.list_inquiries_service(agent, db)
    visible = {row.inquiry_id for row in page.data}

    assert visible == {mine.inquiry_id, pool.inquiry_id}
    assert page.pagination.total == 2

    everything = await InquiryServices.list_inquiries_service(admin, db)
    assert everything.pagination.total == 3

    with pytest.raises(PermissionDenied):
        await InquiryServices.get_inquiry_service(theirs.inquiry_id, agent, db)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_paginates_and_filters(db, admin, agent):
    created = [await submit(db) for _ in range(5)]
    await InquiryServices.claim_inquiry_service(created[0].inquiry_id, agent, db)

    page = await InquiryServices.list_inquiries_service(admin, db, page=2, limit=2)
    assert page.pagination.pages == 3
    assert len(page.data) == 2

    claimed = await InquiryServices.list_inquiries_service(admin, db, status="claimed")
    assert [row.inquiry_id for row in claimed.data] == [created[0].inquiry_id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_removes_inquiry(db, admin, agent):
    inquiry = await submit(db)
    await InquiryServices.claim_inquiry_service(inquiry.inquiry_id, agent, db)
    await InquiryServices.add_note_service(inquiry.inquiry_id, InquiryNoteCreateRequest(note="note"), agent, db)

    await InquiryServices.delete_inquiry_service(inquiry.inquiry_id, admin, db)

    assert await crud_inquiry.get_inquiry_by_id(db, inquiry.inquiry_id, refresh=True) is None
    assert len(await actions(db, "DELETE_INQUIRY")) == 1
