from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from typing import List
from uuid import UUID
import logging
import traceback

from app.core.exceptions import BrokerageError, to_http_exception
from app.db.session import get_db
from app.db.redis_client import get_redis
from app.dependencies import Actor, require_roles
from app.schemas.agent import AgentWorkloadItem, CommissionSummary
from app.schemas.auth import UserResponse
from app.services.agent_services import AgentServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/agents", tags=["Agents"])


@router.get("", response_model=List[UserResponse], summary="List agents")
async def list_agents(
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await AgentServices.list_agents_service(db)
    except Exception as e:
        logger.error("Error in list_agents: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get("/workload", response_model=List[AgentWorkloadItem], summary="Inquiry workload per agent")
async def get_agent_workload(
    actor: Actor = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await AgentServices.get_agent_workload(db)
    except Exception as e:
        logger.error("Error in get_agent_workload: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})


@router.get("/{agent_id}/commissions", response_model=CommissionSummary, summary="Commission summary")
async def get_agent_commissions(
    agent_id: UUID,
    actor: Actor = Depends(require_roles("agent", "admin")),
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis)
):
    try:
        return await AgentServices.get_commission_summary(agent_id, actor, db, redis)
    except BrokerageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error in get_agent_commissions: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail={"error": "Internal Server Error"})
