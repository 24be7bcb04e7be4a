# app/db/redis_client.py
import redis.asyncio as redis

from app.config import settings

# Shared client; commission summaries are cached here
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


async def get_redis():
    """
    Dependency to provide Redis client in FastAPI endpoints
    Usage: `redis: Redis = Depends(get_redis)`
    """
    yield redis_client


async def close_redis() -> None:
    """Called once from the app lifespan on shutdown."""
    await redis_client.aclose()
