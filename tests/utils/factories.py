"""Test data factories using Faker."""

from datetime import datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, get_password_hash
from app.crud import user as crud_user
from app.dependencies import Actor
from app.models.user import User

fake = Faker()

DEFAULT_PASSWORD = "correct-horse-battery"
MANILA = ZoneInfo("Asia/Manila")


async def create_user(
    db: AsyncSession,
    role: str = "agent",
    name: Optional[str] = None,
    email: Optional[str] = None,
    password: str = DEFAULT_PASSWORD,
) -> User:
    """Insert and commit a user."""
    user = await crud_user.create_user(
        db,
        email=email or f"{fake.user_name()}.{fake.random_int(1000, 9999)}@brokerage.ph",
        name=name or fake.name(),
        hashed_password=get_password_hash(password),
        role=role,
    )
    await db.commit()
    return user


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.user_id, name=user.name, role=user.role)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.user_id))}"}


def create_inquiry_data(**overrides) -> dict:
    """Valid public inquiry payload."""
    data = {
        "name": fake.name(),
        "email": f"{fake.user_name()}{fake.random_int(100, 999)}@example.com",
        "phone": fake.numerify("09#########"),
        "message": "I would like to know more about this property. " + fake.sentence(nb_words=6),
        "property_id": None,
        "property_title": None,
        "property_price": None,
        "property_location": None,
    }
    data.update(overrides)
    return data


def create_property_data(**overrides) -> dict:
    """Valid listing payload."""
    data = {
        "title": f"Three Bedroom House in {fake.city()}",
        "type": "House",
        "price": 5_000_000,
        "location": f"{fake.street_name()}, Quezon City",
        "bedrooms": 3,
        "bathrooms": 2,
        "area": 120,
        "description": fake.paragraph(nb_sentences=2),
        "features": ["Garage", "Garden"],
        "images": [fake.image_url(), fake.image_url()],
    }
    data.update(overrides)
    return data


def business_slot(
    days_ahead: int = 1,
    hour: int = 10,
    minute: int = 0,
    duration_minutes: int = 60,
) -> Tuple[datetime, datetime]:
    """Aware (start, end) in Manila local time, `days_ahead` days from today."""
    day = datetime.now(MANILA).date() + timedelta(days=days_ahead)
    start = datetime.combine(day, time(hour, minute), tzinfo=MANILA)
    return start, start + timedelta(minutes=duration_minutes)
