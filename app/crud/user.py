# app/crud/user.py
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


# --- Fetch User by ID ---
async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
    result = await db.execute(select(User).where(User.user_id == user_id))
    return result.scalar_one_or_none()


# --- Fetch User by email ---
async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


# --- Fetch an agent (role = agent) ---
async def get_agent_by_id(db: AsyncSession, agent_id: UUID) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.user_id == agent_id, User.role == "agent")
    )
    return result.scalar_one_or_none()


# --- List agents ---
async def list_agents(db: AsyncSession) -> List[User]:
    result = await db.execute(select(User).where(User.role == "agent").order_by(User.name.asc()))
    return list(result.scalars().all())


# --- Insert User (password already hashed) ---
async def create_user(
    db: AsyncSession,
    email: str,
    name: str,
    hashed_password: str,
    role: str = "agent",
    phone: Optional[str] = None,
) -> User:
    user = User(email=email, name=name, hashed_password=hashed_password, role=role, phone=phone)
    db.add(user)
    await db.flush()
    return user
