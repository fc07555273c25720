"""Per-actor fixed-window rate limiting for comment creation.

One comment per window (100 s by default) per actor. The marker is a
presence-only key; its TTL is set when the window opens and is never
refreshed. Check-then-set is not atomic: two concurrent requests from the
same actor may both pass.
"""

from uuid import UUID

import structlog

from blogapi.core.cache import CacheBackend, CacheError
from blogapi.core.redis import comment_rate_limit_key

from .exceptions import CacheUnavailableError


logger = structlog.get_logger(__name__)

RATE_LIMIT_MARKER = "1"


class RateLimiter:
    """Fixed-window limiter backed by the cache.

    With a disabled cache the limiter never limits. With a configured cache
    a cache failure fails the check (``CacheUnavailableError``).
    """

    def __init__(self, cache: CacheBackend, window_seconds: int = 100) -> None:
        self.cache = cache
        self.window_seconds = window_seconds

    async def check_and_set(self, actor_id: UUID) -> bool:
        """Return True if ``actor_id`` is currently limited.

        When the actor is not limited the window is opened as a side effect.
        """
        if not self.cache.enabled:
            return False

        key = comment_rate_limit_key(actor_id)
        try:
            if await self.cache.exists(key):
                logger.info("comment_rate_limited", actor_id=str(actor_id))
                return True

            await self.cache.set_with_ttl(key, RATE_LIMIT_MARKER, self.window_seconds)
        except CacheError as e:
            logger.error("rate_limit_check_failed", actor_id=str(actor_id), error=str(e))
            raise CacheUnavailableError from e

        return False
