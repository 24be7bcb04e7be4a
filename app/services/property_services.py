from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from decimal import Decimal, ROUND_HALF_UP
from datetime import timedelta
from typing import List, Optional
import logging

from app.config import settings
from app.core.exceptions import (
    CommissionAlreadyPaid,
    ConflictError,
    NotFound,
    ValidationFailed,
)
from app.crud import property as crud_property
from app.crud import user as crud_user
from app.crud.property import RESERVATION_CLEARED
from app.db.base_class import utcnow
from app.dependencies import Actor
from app.models.property import Property
from app.schemas.common import Page
from app.schemas.property import (
    PropertyCreateRequest,
    PropertyStatusUpdateRequest,
    PropertyResponse,
    StatusHistoryItem,
)
from app.services.activity_logger import ActivityLogger, SYSTEM
from app.services.validation import sanitize_text

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# reserved and sold carry extra data and go through reserve_property_service / sell_property_service
PROPERTY_TRANSITIONS = {
    "draft": ("available", "withdrawn", "off-market"),
    "available": ("draft", "reserved", "under-contract", "sold", "withdrawn", "off-market"),
    "reserved": ("available", "under-contract", "sold", "withdrawn"),
    "under-contract": ("available", "sold", "withdrawn"),
    "withdrawn": ("draft", "available", "off-market"),
    "off-market": ("draft", "available", "withdrawn"),
    "sold": (),
}


def compute_commission(sale_price: Decimal, rate: Decimal) -> Decimal:
    """sale_price * rate / 100, rounded half-up to the cent."""
    return (Decimal(sale_price) * Decimal(rate) / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)


def commission_cache_key(agent_id: UUID) -> str:
    return f"agent_commissions:{agent_id}"


class PropertyServices:
    """
        Property listings, their status lifecycle and the sale/commission engine.

        Every status change:
            - is validated against PROPERTY_TRANSITIONS,
            - is written with a conditional UPDATE on the status it was validated against,
            - appends one row to the property's status history,
            - writes one activity-log entry,
        all inside a single transaction.
    """

    @staticmethod
    async def release_expired_reservations(db: AsyncSession) -> List[UUID]:

        """
        Return every reservation whose hold has lapsed to `available`.

        Runs before property reads and status changes, and from the admin sweep endpoint.
        Each release clears the reservation fields, appends a history row by `system` with the
        reason "Reservation expired" and logs RESERVATION_EXPIRED.

        Returns:
            List[UUID]: ids of the released properties.
        """

        now = utcnow()
        expired = await crud_property.get_expired_reservations(db, now)
        if not expired:
            return []

        released = []
        for listing in expired:
            property_id = listing.property_id
            held_by = listing.reserved_by
            changed = await crud_property.update_status_if(
                db,
                property_id,
                "reserved",
                {"status": "available", **RESERVATION_CLEARED, "updated_at": now},
            )
            if not changed:
                continue

            listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
            await crud_property.append_status_history(
                db, listing, "available", "system", SYSTEM, now, reason="Reservation expired",
            )
            await ActivityLogger.record(
                db,
                "RESERVATION_EXPIRED",
                f"Reservation of {listing.title} for {held_by} expired",
                performed_by=SYSTEM,
            )
            released.append(property_id)

        await db.commit()
        if released:
            logger.info("Released %s expired reservation(s)", len(released))
        return released

    @staticmethod
    async def create_property_service(request: PropertyCreateRequest, actor: Actor, db: AsyncSession) -> PropertyResponse:

        """
        Create a listing.

        Admin listings are published (`available`) unless an initial status is given; agent listings
        start as `draft` unless the agent asks to publish. Images are stored in the given order and
        the first one is the cover. History starts empty: creation is not a status change.
        """

        if actor.is_admin:
            status = request.status or "available"
        else:
            status = "available" if request.publish else "draft"

        property_data = {
            "title": sanitize_text(request.title),
            "type": sanitize_text(request.type) or "House",
            "price": Decimal(str(request.price)),
            "location": sanitize_text(request.location) or "",
            "bedrooms": request.bedrooms,
            "bathrooms": request.bathrooms,
            "area": Decimal(str(request.area)),
            "description": sanitize_text(request.description) or "",
            "features": [sanitize_text(feature) for feature in request.features if feature and feature.strip()],
        }
        image_urls = [url.strip() for url in request.images if url and url.strip()]

        new_property = await crud_property.create_property(
            db, property_data, image_urls, status, actor.name, utcnow(),
        )

        action = "CREATE_PROPERTY" if status != "draft" else "CREATE_PROPERTY_DRAFT"
        await ActivityLogger.record(db, action, f"Created property {new_property.title} ({status})", actor)
        await db.commit()

        created = await crud_property.get_property_by_id(db, new_property.property_id, refresh=True)
        return PropertyResponse.model_validate(created)

    @staticmethod
    async def list_properties_service(
        db: AsyncSession,
        actor: Optional[Actor] = None,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
    ) -> Page[PropertyResponse]:
        """Public callers never see drafts; staff see every status."""
        await PropertyServices.release_expired_reservations(db)

        hidden = () if actor is not None else ("draft",)
        total, rows = await crud_property.list_properties(
            db, page=page, limit=limit, status=status, exclude_statuses=hidden,
        )
        return Page[PropertyResponse].build(
            [PropertyResponse.model_validate(row) for row in rows], total, page, limit,
        )

    @staticmethod
    async def get_property_service(
        property_id: UUID,
        db: AsyncSession,
        actor: Optional[Actor] = None,
        ip_address: Optional[str] = None,
    ) -> PropertyResponse:
        """
        Read one listing. A public read counts as a view (view_count, last_viewed_at and
        a property_views row); staff reads do not.
        """
        await PropertyServices.release_expired_reservations(db)

        listing = await crud_property.get_property_by_id(db, property_id)
        if not listing or (actor is None and listing.status == "draft"):
            raise NotFound("Property not found")

        if actor is None:
            await crud_property.record_view(db, property_id, ip_address, utcnow())
            await db.commit()
            listing = await crud_property.get_property_by_id(db, property_id, refresh=True)

        return PropertyResponse.model_validate(listing)

    @staticmethod
    async def get_history_service(
        property_id: UUID, db: AsyncSession, actor: Optional[Actor] = None
    ) -> List[StatusHistoryItem]:
        await PropertyServices.release_expired_reservations(db)

        listing = await crud_property.get_property_by_id(db, property_id)
        if not listing or (actor is None and listing.status == "draft"):
            raise NotFound("Property not found")
        return [StatusHistoryItem.model_validate(entry) for entry in listing.status_history]

    @staticmethod
    async def change_status_service(
        property_id: UUID,
        request: PropertyStatusUpdateRequest,
        actor: Actor,
        db: AsyncSession,
        redis: Redis,
    ) -> PropertyResponse:

        """
        Generic status change entry point.

        Workflow:
        1. Release lapsed reservations so the current status is accurate.
        2. `reserved` is routed to reserve_property_service and `sold` to sell_property_service.
        3. Any other target must be allowed by PROPERTY_TRANSITIONS from the current status.
        4. Conditional status write, history append and UPDATE_PROPERTY_STATUS log in one
           transaction. Leaving `reserved` clears the reservation fields.

        Raises:
            NotFound: unknown property (or selling/reserving agent).
            ValidationFailed: illegal transition or missing sale/reservation input.
            ConflictError: the status changed underneath this request.
        """

        if request.status == "reserved":
            if request.agent_id is None:
                raise ValidationFailed(
                    "Reserving agent is required",
                    fields={"agent_id": "Select the agent the property is reserved for"},
                )
            return await PropertyServices.reserve_property_service(
                property_id,
                request.agent_id,
                request.hours or settings.DEFAULT_RESERVATION_HOURS,
                actor,
                db,
            )

        if request.status == "sold":
            return await PropertyServices.sell_property_service(property_id, request, actor, db, redis)

        await PropertyServices.release_expired_reservations(db)

        listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
        if not listing:
            raise NotFound("Property not found")

        current = listing.status
        PropertyServices._ensure_transition(current, request.status)

        now = utcnow()
        values = {"status": request.status, "updated_at": now}
        if current == "reserved":
            values.update(RESERVATION_CLEARED)

        await PropertyServices._write_status(db, listing, current, values)

        listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
        await crud_property.append_status_history(
            db, listing, request.status, str(actor.user_id), actor.name, now, reason=sanitize_text(request.reason),
        )
        await ActivityLogger.record(
            db,
            "UPDATE_PROPERTY_STATUS",
            f"Changed {listing.title} status: {current} -> {request.status}",
            actor,
        )
        await db.commit()

        updated = await crud_property.get_property_by_id(db, property_id, refresh=True)
        return PropertyResponse.model_validate(updated)

    @staticmethod
    async def reserve_property_service(
        property_id: UUID,
        agent_id: UUID,
        hours: int,
        actor: Actor,
        db: AsyncSession,
    ) -> PropertyResponse:
        """Hold an available listing for an agent for `hours` hours. Only `available` can be reserved."""

        if hours < 1 or hours > 720:
            raise ValidationFailed("Reservation must last between 1 and 720 hours", fields={"hours": "1-720"})

        agent = await crud_user.get_agent_by_id(db, agent_id)
        if not agent:
            raise NotFound("Agent not found")

        await PropertyServices.release_expired_reservations(db)

        listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
        if not listing:
            raise NotFound("Property not found")

        now = utcnow()
        reserved = await crud_property.update_status_if(
            db,
            property_id,
            "available",
            {
                "status": "reserved",
                "reserved_by": agent.name,
                "reserved_by_agent_id": agent.user_id,
                "reserved_at": now,
                "reserved_until": now + timedelta(hours=hours),
                "updated_at": now,
            },
        )
        if not reserved:
            current = await crud_property.get_property_by_id(db, property_id, refresh=True)
            raise ConflictError("Property is not available for reservation", current_status=current.status)

        reason = f"Reserved for {agent.name} for {hours} hours"
        listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
        await crud_property.append_status_history(
            db, listing, "reserved", str(actor.user_id), actor.name, now, reason=reason,
        )
        await ActivityLogger.record(db, "RESERVE_PROPERTY", f"{listing.title}: {reason}", actor)
        await db.commit()

        logger.info("Property %s reserved for %s until %s", property_id, agent.name, listing.reserved_until)
        updated = await crud_property.get_property_by_id(db, property_id, refresh=True)
        return PropertyResponse.model_validate(updated)

    @staticmethod
    async def sell_property_service(
        property_id: UUID,
        request: PropertyStatusUpdateRequest,
        actor: Actor,
        db: AsyncSession,
        redis: Redis,
    ) -> PropertyResponse:

        """
        Record a sale and its commission.

        Workflow:
        1. Resolve the selling agent (must be an agent user).
        2. Check `sold` is reachable from the current status.
        3. sale_price defaults to the listing price, commission_rate to DEFAULT_COMMISSION_RATE;
           commission_amount = sale_price * rate / 100 rounded to the cent, status `pending`.
        4. Conditional status write (clearing any reservation), history append with the sale
           details as reason, SELL_PROPERTY log, commit.
        5. Drop the agent's cached commission summary.
        """

        if request.agent_id is None:
            raise ValidationFailed(
                "Selling agent is required",
                fields={"agent_id": "Select the agent who closed the sale"},
            )

        agent = await crud_user.get_agent_by_id(db, request.agent_id)
        if not agent:
            raise NotFound("Agent not found")

        await PropertyServices.release_expired_reservations(db)

        listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
        if not listing:
            raise NotFound("Property not found")

        current = listing.status
        PropertyServices._ensure_transition(current, "sold")

        sale_price = Decimal(str(request.sale_price)) if request.sale_price is not None else Decimal(listing.price)
        rate = (
            Decimal(str(request.commission_rate))
            if request.commission_rate is not None
            else Decimal(str(settings.DEFAULT_COMMISSION_RATE))
        ).quantize(CENT, rounding=ROUND_HALF_UP)
        if rate <= 0 or rate > 100:
            raise ValidationFailed("Commission rate must be above 0 and at most 100", fields={"commission_rate": "0-100"})
        amount = compute_commission(sale_price, rate)

        now = utcnow()
        values = {
            "status": "sold",
            "sold_by": agent.name,
            "sold_by_agent_id": agent.user_id,
            "sold_at": now,
            "sale_price": sale_price,
            "commission_rate": rate,
            "commission_amount": amount,
            "commission_status": "pending",
            "commission_paid_at": None,
            "commission_paid_by": None,
            "updated_at": now,
            **RESERVATION_CLEARED,
        }
        await PropertyServices._write_status(db, listing, current, values)

        reason = (
            f"Sold by {agent.name} for ₱{sale_price:,.2f} "
            f"(commission {rate.normalize():f}%: ₱{amount:,.2f})"
        )
        listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
        await crud_property.append_status_history(
            db, listing, "sold", str(actor.user_id), actor.name, now, reason=reason,
        )
        await ActivityLogger.record(db, "SELL_PROPERTY", f"{listing.title}: {reason}", actor)
        await db.commit()

        await redis.delete(commission_cache_key(agent.user_id))
        logger.info("Property %s sold by %s, commission %s pending", property_id, agent.name, amount)

        updated = await crud_property.get_property_by_id(db, property_id, refresh=True)
        return PropertyResponse.model_validate(updated)

    @staticmethod
    async def pay_commission_service(
        property_id: UUID,
        actor: Actor,
        db: AsyncSession,
        redis: Redis,
    ) -> PropertyResponse:
        """pending -> paid, exactly once."""

        listing = await crud_property.get_property_by_id(db, property_id)
        if not listing:
            raise NotFound("Property not found")

        paid = await crud_property.mark_commission_paid_if_pending(db, property_id, actor.name, utcnow())
        if not paid:
            current = await crud_property.get_property_by_id(db, property_id, refresh=True)
            if current.commission_status == "paid":
                raise CommissionAlreadyPaid(
                    "Commission already paid",
                    paid_at=current.commission_paid_at.isoformat() if current.commission_paid_at else None,
                    paid_by=current.commission_paid_by,
                )
            raise ConflictError("No commission recorded")

        listing = await crud_property.get_property_by_id(db, property_id, refresh=True)
        await ActivityLogger.record(
            db,
            "PAY_COMMISSION",
            f"Paid commission of ₱{listing.commission_amount:,.2f} to {listing.sold_by} for {listing.title}",
            actor,
        )
        await db.commit()

        await redis.delete(commission_cache_key(listing.sold_by_agent_id))
        return PropertyResponse.model_validate(listing)

    @staticmethod
    async def delete_property_service(property_id: UUID, actor: Actor, db: AsyncSession) -> None:
        listing = await crud_property.get_property_by_id(db, property_id)
        if not listing:
            raise NotFound("Property not found")

        title = listing.title
        db.expunge(listing)
        await crud_property.delete_property(db, property_id)
        await ActivityLogger.record(db, "DELETE_PROPERTY", f"Deleted property {title}", actor)
        await db.commit()

    @staticmethod
    def _ensure_transition(current: str, target: str) -> None:
        if target == current:
            raise ValidationFailed(f"Property is already {current}", current_status=current)
        if target not in PROPERTY_TRANSITIONS.get(current, ()):
            raise ValidationFailed(
                f"Cannot change property status from {current} to {target}",
                current_status=current,
                requested_status=target,
            )

    @staticmethod
    async def _write_status(db: AsyncSession, listing: Property, expected: str, values: dict) -> None:
        changed = await crud_property.update_status_if(db, listing.property_id, expected, values)
        if not changed:
            raise ConflictError("Property status changed by another request, reload and retry")
