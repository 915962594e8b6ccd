"""
Redis Configuration

Async Redis client backing the student list cache. Redis is optional: when
it is unreachable the cache degrades to direct queries.
"""

from redis.asyncio import Redis, from_url

from app.core.config import settings

# Redis client instance
redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Initialize the Redis connection.

    Call this on application startup. The client is only published once
    the connection has answered a PING.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    redis_client = client
    return redis_client


async def get_redis() -> Redis | None:
    """
    Get the Redis client instance.

    Returns None if Redis is not available (optional dependency).

    Usage in FastAPI:
        async def get_student_list_cache(redis: Redis | None = Depends(get_redis)):
            return StudentListCache(redis)
    """
    return redis_client


def is_redis_available() -> bool:
    """Check if Redis client is initialized and available."""
    return redis_client is not None


async def close_redis() -> None:
    """Close the Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
