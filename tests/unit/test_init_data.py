"""Tests for the start-up bootstrap admin."""

import pytest
from sqlalchemy import select

from app.config import settings
from app.core.security import verify_password
from app.db.init_data import ensure_first_admin
from app.models import User


@pytest.mark.unit
@pytest.mark.asyncio
async def test_bootstrap_admin_created_once(db, monkeypatch):
    monkeypatch.setattr(settings, "FIRST_ADMIN_EMAIL", "Owner@Brokerage.ph")
    monkeypatch.setattr(settings, "FIRST_ADMIN_PASSWORD", "first-light-2024")

    await ensure_first_admin(db)
    await ensure_first_admin(db)

    users = (await db.execute(select(User))).scalars().all()
    assert len(users) == 1
    assert users[0].email == "owner@brokerage.ph"
    assert users[0].role == "admin"
    assert verify_password("first-light-2024", users[0].hashed_password)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_no_bootstrap_without_settings(db, monkeypatch):
    monkeypatch.setattr(settings, "FIRST_ADMIN_EMAIL", None)

    await ensure_first_admin(db)

    assert (await db.execute(select(User))).scalars().all() == []
