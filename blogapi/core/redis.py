"""Redis connection management and key layout.

Redis backs three things:
- Cache entries (comment pages, comment counts)
- Rate-limit markers
- Pub/Sub channels and the comment change stream

The key layout is shared with existing deployments and must not change.
"""

import redis.asyncio as redis

from blogapi.config import Settings
from blogapi.core.logging import get_logger


logger = get_logger(__name__)


async def init_redis(settings: Settings) -> redis.Redis:
    """Create the Redis connection pool and check it with a PING."""
    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await client.ping()
        logger.info("redis_connected", url=settings.redis_url)
    except redis.RedisError as e:
        logger.warning("redis_connection_failed", error=str(e))
        await client.aclose()
        raise

    return client


async def shutdown_redis(client: redis.Redis | None) -> None:
    """Close the Redis connection pool."""
    if client is not None:
        await client.aclose()
        logger.info("redis_disconnected")


# ==============================================================================
# Key layout
# ==============================================================================

COMMENT_STREAM = "stream:comments"


def comment_list_key(post_id: int) -> str:
    """Key of the cached first comment page of a post."""
    return f"comments:post:{post_id}"


def comment_count_key(post_id: int) -> str:
    """Key of the cached comment count of a post."""
    return f"post:comment_count:{post_id}"


def comment_rate_limit_key(actor_id: object) -> str:
    """Key of an actor's comment rate-limit marker."""
    return f"rate_limit:comment:{actor_id}"


def notification_channel(user_id: object) -> str:
    """Get user-specific notification channel name."""
    return f"notifications:user:{user_id}"
