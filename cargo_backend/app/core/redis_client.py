"""
Redis client initialization.

Redis backs the settings cache (price per kg, exchange rate) read on
every branch notification run.
"""

import redis.asyncio as redis
from cargo_backend.app.core.config import settings


# Create async Redis client (connects lazily on first command)
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Get Redis client instance.

    Used as a FastAPI dependency so tests can substitute an in-memory double.
    """
    return redis_client


async def ping_redis() -> bool:
    """True if Redis answers; the settings cache degrades to the database otherwise."""
    try:
        return bool(await redis_client.ping())
    except Exception:
        return False


async def close_redis():
    await redis_client.aclose()
