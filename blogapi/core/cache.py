"""Key-value cache facade.

Services talk to the cache through ``CacheBackend`` so the whole comment
core runs unchanged with or without Redis:

- ``RedisCache`` wraps a ``redis.asyncio`` client.
- ``NullCache`` is used when Redis is disabled or unreachable: reads miss,
  writes are dropped and ``enabled`` is False.

Every ``RedisCache`` operation raises ``CacheError`` on failure; callers
decide whether that is fatal (rate limiting) or soft (everything else).
"""

from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator, Mapping
from typing import TYPE_CHECKING

from redis.exceptions import RedisError


if TYPE_CHECKING:
    from redis.asyncio import Redis


class CacheError(Exception):
    """A cache operation failed."""

    def __init__(self, operation: str, key: str) -> None:
        self.operation = operation
        self.key = key
        super().__init__(f"cache {operation} failed for {key!r}")


class CacheBackend(ABC):
    """Capability interface over a shared key-value store."""

    enabled: bool = True

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored at ``key`` or None."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` at ``key`` expiring after ``ttl_seconds``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``."""

    @abstractmethod
    async def increment(self, key: str, delta: int = 1) -> int:
        """Add ``delta`` to the integer at ``key`` and return the new value."""

    @abstractmethod
    async def increment_if_exists(self, key: str, delta: int = 1) -> int | None:
        """Atomically add ``delta`` to ``key`` if present.

        Returns the new value, or None when the key is missing. A missing key
        is never created.
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True when ``key`` is present."""

    @abstractmethod
    async def append_stream(self, stream: str, fields: Mapping[str, str]) -> str | None:
        """Append an entry to an append-only stream, returning its id."""

    @abstractmethod
    async def publish(self, channel: str, message: str) -> int:
        """Publish ``message`` and return the number of receivers."""

    @abstractmethod
    def subscribe(self, channel: str) -> AsyncIterator[str]:
        """Yield messages published on ``channel`` until the consumer stops."""


@contextlib.contextmanager
def _translate_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        raise CacheError(operation, key) from e


# KEYS[1] = counter, ARGV[1] = delta
INCREMENT_IF_EXISTS_SCRIPT = """
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("INCRBY", KEYS[1], ARGV[1])
end
return nil
"""


class RedisCache(CacheBackend):
    """``CacheBackend`` backed by Redis."""

    def __init__(self, client: Redis, poll_timeout: float = 1.0) -> None:
        """Initialize with a ``decode_responses=True`` client.

        Args:
            client: Redis client (connection pool)
            poll_timeout: Seconds a subscriber waits per pub/sub poll
        """
        self.client = client
        self.poll_timeout = poll_timeout

    async def get(self, key: str) -> str | None:
        with _translate_errors("get", key):
            return await self.client.get(key)

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        with _translate_errors("set", key):
            await self.client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        with _translate_errors("delete", key):
            await self.client.delete(key)

    async def increment(self, key: str, delta: int = 1) -> int:
        with _translate_errors("increment", key):
            return await self.client.incrby(key, delta)

    async def increment_if_exists(self, key: str, delta: int = 1) -> int | None:
        with _translate_errors("increment", key):
            return await self.client.eval(INCREMENT_IF_EXISTS_SCRIPT, 1, key, delta)

    async def exists(self, key: str) -> bool:
        with _translate_errors("exists", key):
            return bool(await self.client.exists(key))

    async def append_stream(self, stream: str, fields: Mapping[str, str]) -> str | None:
        with _translate_errors("xadd", stream):
            return await self.client.xadd(stream, dict(fields))

    async def publish(self, channel: str, message: str) -> int:
        with _translate_errors("publish", channel):
            return await self.client.publish(channel, message)

    async def subscribe(self, channel: str) -> AsyncIterator[str]:
        pubsub = self.client.pubsub()
        try:
            with _translate_errors("subscribe", channel):
                await pubsub.subscribe(channel)
                while True:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=self.poll_timeout
                    )
                    if message and message["type"] == "message":
                        yield message["data"]
        finally:
            with contextlib.suppress(RedisError):
                await pubsub.unsubscribe(channel)
            await pubsub.aclose()


class NullCache(CacheBackend):
    """No-op backend for deployments without Redis."""

    enabled = False

    async def get(self, key: str) -> str | None:
        return None

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def increment(self, key: str, delta: int = 1) -> int:
        return 0

    async def increment_if_exists(self, key: str, delta: int = 1) -> int | None:
        return None

    async def exists(self, key: str) -> bool:
        return False

    async def append_stream(self, stream: str, fields: Mapping[str, str]) -> str | None:
        return None

    async def publish(self, channel: str, message: str) -> int:
        return 0

    async def subscribe(self, channel: str) -> AsyncIterator[str]:
        return
        yield  # pragma: no cover
