from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from decimal import Decimal
from typing import List
from uuid import UUID
import json

from app.config import settings
from app.core.exceptions import NotFound, PermissionDenied
from app.crud import agent as crud_agent
from app.crud import property as crud_property
from app.crud import user as crud_user
from app.dependencies import Actor
from app.schemas.agent import AgentWorkloadItem, CommissionItem, CommissionSummary
from app.schemas.auth import UserResponse
from app.services.property_services import commission_cache_key


class AgentServices:
    """
        Service class for the agent dashboards.

        Features:
            - Workload (admin): per agent, active / total / successful inquiry counts.
            - Commission summary (the agent themself, or an admin): every sold property the agent
              closed with its commission, plus paid / pending totals. The assembled summary is
              cached in Redis for DASHBOARD_CACHE_SECONDS and dropped whenever a sale or a
              commission payment touches the agent.

        Methods:
            list_agents_service(db):
                Every agent user, for assignment pickers.
            get_agent_workload(db):
                Build the workload table for every agent.
            get_commission_summary(agent_id, actor, db, redis):
                Build (or read from cache) the commission summary for one agent.
    """

    @staticmethod
    async def list_agents_service(db: AsyncSession) -> List[UserResponse]:
        agents = await crud_user.list_agents(db)
        return [UserResponse.model_validate(agent) for agent in agents]

    @staticmethod
    async def get_agent_workload(db: AsyncSession) -> List[AgentWorkloadItem]:
        rows = await crud_agent.get_agent_workload(db)
        return [AgentWorkloadItem(**row) for row in rows]

    @staticmethod
    async def get_commission_summary(
        agent_id: UUID,
        actor: Actor,
        db: AsyncSession,
        redis: Redis,
    ) -> CommissionSummary:
        if not actor.is_admin and actor.user_id != agent_id:
            raise PermissionDenied("Agents can only view their own commissions")

        cache_key = commission_cache_key(agent_id)

        # 1. --- Checking Redis cache ---
        cached = await redis.get(cache_key)
        if cached:
            return CommissionSummary(**json.loads(cached))

        agent = await crud_user.get_agent_by_id(db, agent_id)
        if not agent:
            raise NotFound("Agent not found")

        # 2. --- Sold properties with commission ---
        sales = await crud_property.get_commissioned_sales(db, agent_id)
        commissions = [
            CommissionItem(
                property_id=sale.property_id,
                title=sale.title,
                location=sale.location,
                listing_price=sale.price,
                sale_price=sale.sale_price,
                rate=sale.commission_rate,
                amount=sale.commission_amount,
                status=sale.commission_status,
                sold_at=sale.sold_at,
                paid_at=sale.commission_paid_at,
            )
            for sale in sales
        ]

        # 3. --- Totals (Decimal until the response) ---
        paid = [sale for sale in sales if sale.commission_status == "paid"]
        pending = [sale for sale in sales if sale.commission_status == "pending"]
        paid_total = sum((Decimal(sale.commission_amount) for sale in paid), Decimal("0"))
        pending_total = sum((Decimal(sale.commission_amount) for sale in pending), Decimal("0"))

        response_obj = CommissionSummary(
            agent_id=agent_id,
            total_commission=paid_total + pending_total,
            paid_commission=paid_total,
            pending_commission=pending_total,
            paid_count=len(paid),
            pending_count=len(pending),
            commissions=commissions,
        )

        # Cache in Redis
        await redis.set(
            cache_key,
            json.dumps(response_obj.model_dump(mode="json")),
            ex=settings.DASHBOARD_CACHE_SECONDS,
        )

        return response_obj
