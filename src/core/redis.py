"""Redis clients for health checks and shared circuit breaker state."""

import redis
import redis.asyncio as aioredis

from src.core.config import settings
from src.core.logging import get_logger

logger = get_logger(__name__)


async def create_redis_pool() -> aioredis.Redis:
    """Create the async Redis connection pool.

    Usage in lifespan:
        app.state.redis = await create_redis_pool()
        yield
        await app.state.redis.aclose()

    Returns:
        Redis connection pool configured with settings.
    """
    return aioredis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        max_connections=10,
    )


def create_breaker_redis() -> redis.Redis:
    """Create the synchronous client used by circuit breaker storage.

    Breaker storage is read from worker threads, so it gets its own
    blocking client rather than sharing the async pool.
    """
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=2,
    )


async def check_redis_health(pool: aioredis.Redis) -> bool:
    """Check if Redis is responding.

    Args:
        pool: Redis connection pool to check.

    Returns:
        True if Redis responds to ping, False otherwise.
    """
    try:
        await pool.ping()
        return True
    except Exception as e:
        logger.exception("redis_health_check_failed", error=str(e))
        return False
