from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from app.config import settings
from app.db.init_data import ensure_first_admin
from app.db.redis_client import close_redis
from app.db.session import async_session, init_models
from app.routers import activity_log, agent, auth, calendar, inquiry, property
from app.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_models()
    async with async_session() as db:
        await ensure_first_admin(db)
    logger.info("%s %s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await close_redis()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

# --- Register Routers ---
app.include_router(auth.router)          # /api/v1/auth/*
app.include_router(inquiry.router)       # /api/v1/inquiries/*
app.include_router(property.router)      # /api/v1/properties/*
app.include_router(calendar.router)      # /api/v1/calendar/*
app.include_router(agent.router)         # /api/v1/agents/*
app.include_router(activity_log.router)  # /api/v1/activity-log


# --- Root health check ---
@app.get("/")
async def root():
    return {"message": "Brokerage Desk API is running"}
