# app/crud/property.py
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.common import paginate
from app.models.property import Property, PropertyImage, PropertyStatusHistory, PropertyView

RESERVATION_CLEARED = {
    "reserved_by": None,
    "reserved_by_agent_id": None,
    "reserved_at": None,
    "reserved_until": None,
}


# --- Fetch Property by ID ---
async def get_property_by_id(db: AsyncSession, property_id: UUID, refresh: bool = False) -> Optional[Property]:
    stmt = select(Property).where(Property.property_id == property_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# --- List Properties ---
async def list_properties(
    db: AsyncSession,
    page: int,
    limit: int,
    status: Optional[str] = None,
    exclude_statuses: Sequence[str] = (),
) -> Tuple[int, List[Property]]:
    stmt = select(Property)
    if status:
        stmt = stmt.where(Property.status == status)
    if exclude_statuses:
        stmt = stmt.where(Property.status.notin_(exclude_statuses))
    stmt = stmt.order_by(Property.created_at.desc())
    return await paginate(db, stmt, page, limit)


# --- Insert Property + ordered images ---
async def create_property(
    db: AsyncSession,
    property_data: Dict[str, Any],
    image_urls: Sequence[str],
    status: str,
    created_by: str,
    now: datetime,
) -> Property:
    new_property = Property(
        **property_data,
        status=status,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    new_property.images = [
        PropertyImage(image_url=url, position=position, created_at=now)
        for position, url in enumerate(image_urls)
    ]
    new_property.status_history = []
    db.add(new_property)
    await db.flush()
    return new_property


# --- Status write, guarded on the current status ---
async def update_status_if(
    db: AsyncSession,
    property_id: UUID,
    expected_status: str,
    values: Dict[str, Any],
) -> int:
    stmt = (
        update(Property)
        .where(Property.property_id == property_id, Property.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


# --- Append-only status history ---
async def append_status_history(
    db: AsyncSession,
    prop: Property,
    status: str,
    changed_by: str,
    changed_by_name: str,
    changed_at: datetime,
    reason: Optional[str] = None,
) -> PropertyStatusHistory:
    entry = PropertyStatusHistory(
        property_id=prop.property_id,
        sequence=len(prop.status_history) + 1,
        status=status,
        changed_by=changed_by,
        changed_by_name=changed_by_name,
        changed_at=changed_at,
        reason=reason,
    )
    prop.status_history.append(entry)
    await db.flush()
    return entry


# --- Commission: pending -> paid only ---
async def mark_commission_paid_if_pending(
    db: AsyncSession,
    property_id: UUID,
    paid_by: str,
    now: datetime,
) -> int:
    stmt = (
        update(Property)
        .where(
            Property.property_id == property_id,
            Property.status == "sold",
            Property.commission_status == "pending",
        )
        .values(commission_status="paid", commission_paid_at=now, commission_paid_by=paid_by, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


# --- Reservations whose hold has lapsed ---
async def get_expired_reservations(db: AsyncSession, now: datetime) -> List[Property]:
    result = await db.execute(
        select(Property).where(
            Property.status == "reserved",
            Property.reserved_until.isnot(None),
            Property.reserved_until <= now,
        )
    )
    return list(result.scalars().all())


# --- View tracking ---
async def record_view(db: AsyncSession, property_id: UUID, ip_address: Optional[str], now: datetime) -> None:
    await db.execute(
        update(Property)
        .where(Property.property_id == property_id)
        .values(view_count=Property.view_count + 1, last_viewed_at=now)
        .execution_options(synchronize_session=False)
    )
    db.add(PropertyView(property_id=property_id, viewed_at=now, ip_address=ip_address))
    await db.flush()


# --- Sold properties carrying a commission for an agent ---
async def get_commissioned_sales(db: AsyncSession, agent_id: UUID) -> List[Property]:
    result = await db.execute(
        select(Property)
        .where(
            Property.sold_by_agent_id == agent_id,
            Property.status == "sold",
            Property.commission_status.isnot(None),
        )
        .order_by(Property.sold_at.desc())
    )
    return list(result.scalars().all())


# --- Delete Property ---
async def delete_property(db: AsyncSession, property_id: UUID) -> bool:
    await db.execute(delete(PropertyImage).where(PropertyImage.property_id == property_id))
    await db.execute(delete(PropertyStatusHistory).where(PropertyStatusHistory.property_id == property_id))
    await db.execute(delete(PropertyView).where(PropertyView.property_id == property_id))
    result = await db.execute(delete(Property).where(Property.property_id == property_id))
    return result.rowcount > 0
