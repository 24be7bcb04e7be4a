"""Tests for the audit trail writer."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models import ActivityLog
from app.services.activity_logger import ANONYMOUS, ActivityLogger


async def all_entries(db):
    return (await db.execute(select(ActivityLog).order_by(ActivityLog.timestamp))).scalars().all()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_commits_with_caller(db, agent):
    await ActivityLogger.record(db, "ADD_INQUIRY_NOTE", "Called back", agent)
    await db.commit()

    [entry] = await all_entries(db)
    assert entry.action == "ADD_INQUIRY_NOTE"
    assert entry.performed_by == agent.name
    assert entry.performed_by_id == agent.user_id
    assert entry.timestamp is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_rolls_back_with_caller(db, agent):
    await ActivityLogger.record(db, "CLAIM_INQUIRY", "Claimed", agent)
    await db.rollback()

    assert await all_entries(db) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_anonymous_entry(db):
    await ActivityLogger.record(db, "CREATE_INQUIRY", "Public inquiry")
    await db.commit()

    [entry] = await all_entries(db)
    assert entry.performed_by == ANONYMOUS
    assert entry.performed_by_id is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_security_event_commits_on_its_own(db, session_factory, caplog):
    with caplog.at_level(logging.WARNING):
        await ActivityLogger.record_security_event(db, "XSS_ATTEMPT", "Script tag in message")

    async with session_factory() as other:
        [entry] = await all_entries(other)
    assert entry.action == "XSS_ATTEMPT"
    assert "XSS_ATTEMPT" in caplog.text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_security_event_storage_failure_is_reported(caplog):
    db = MagicMock()
    db.commit = AsyncMock(side_effect=SQLAlchemyError("database is locked"))
    db.rollback = AsyncMock()

    with caplog.at_level(logging.ERROR):
        await ActivityLogger.record_security_event(db, "LOGIN_FAILED", "Bad password for x@example.com")

    db.rollback.assert_awaited_once()
    assert any(r.levelno == logging.ERROR and "LOGIN_FAILED" in r.getMessage() for r in caplog.records)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_newest_first_with_filter(db, admin):
    for action in ("CREATE_PROPERTY", "SELL_PROPERTY", "CREATE_PROPERTY"):
        await ActivityLogger.record(db, action, action.lower(), admin)
        await db.commit()

    total, rows = await ActivityLogger.list_entries_service(db, page=1, limit=10)
    filtered_total, filtered = await ActivityLogger.list_entries_service(db, page=1, limit=10, action="CREATE_PROPERTY")

    assert total == 3
    assert rows[0].timestamp >= rows[-1].timestamp
    assert filtered_total == 2
    assert {row.action for row in filtered} == {"CREATE_PROPERTY"}


@pytest.mark.unit
def test_entries_have_no_update_timestamp():
    assert "updated_at" not in ActivityLog.__table__.c
    assert "created_at" in ActivityLog.__table__.c
