"""Notification fan-out over the cache's pub/sub channels.

Delivery is at-most-once: an event reaches the connections subscribed to
the recipient's channel when it is published, and is lost otherwise.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from pydantic import ValidationError

from blogapi.core.cache import CacheBackend, CacheError
from blogapi.core.redis import notification_channel

from .models import (
    NEW_COMMENT_MESSAGE,
    REPLY_MESSAGE,
    NotificationEvent,
    NotificationType,
)


if TYPE_CHECKING:
    from blogapi.comments.models import Comment


logger = structlog.get_logger(__name__)


class NotificationService:
    """Publishes and subscribes to per-user notification channels."""

    def __init__(self, cache: CacheBackend) -> None:
        self.cache = cache

    @property
    def enabled(self) -> bool:
        """False when there is no pub/sub backend to deliver through."""
        return self.cache.enabled

    async def publish(self, recipient_id: UUID, event: NotificationEvent) -> int:
        """Publish ``event`` to ``recipient_id``'s channel.

        Returns:
            Number of subscribers that received the event

        Raises:
            CacheError: If the publish fails
        """
        channel = notification_channel(recipient_id)
        receivers = await self.cache.publish(channel, event.model_dump_json())
        logger.debug(
            "notification_published",
            recipient_id=str(recipient_id),
            notification_type=event.notification_type.value,
            receivers=receivers,
        )
        return receivers

    async def subscribe(self, recipient_id: UUID) -> AsyncIterator[NotificationEvent]:
        """Yield events published for ``recipient_id`` until the consumer stops.

        Malformed payloads are logged and skipped.
        """
        channel = notification_channel(recipient_id)
        async with aclosing(self.cache.subscribe(channel)) as messages:
            async for raw in messages:
                try:
                    yield NotificationEvent.model_validate_json(raw)
                except ValidationError as e:
                    logger.warning(
                        "notification_payload_invalid",
                        recipient_id=str(recipient_id),
                        error_count=e.error_count(),
                    )

    # ==========================================================================
    # Comment notifications
    # ==========================================================================

    async def notify_reply(self, parent_author_id: UUID, reply: Comment) -> int | None:
        """Notify a comment's author about a reply.

        Returns None if the replier is the comment author or the publish failed.
        """
        # Don't notify if user replied to their own comment
        if parent_author_id == reply.user_id:
            return None

        event = NotificationEvent(
            recipient_id=parent_author_id,
            notification_type=NotificationType.COMMENT_REPLY,
            object_id=reply.id,
            related_object_id=reply.post_id,
            actor_id=reply.user_id,
            content=REPLY_MESSAGE,
        )
        return await self._publish_quietly(parent_author_id, event)

    async def notify_new_comment(
        self, post_author_id: UUID, comment: Comment
    ) -> int | None:
        """Notify a post's author about a new root comment.

        Returns None if the commenter is the post author or the publish failed.
        """
        if post_author_id == comment.user_id:
            return None

        event = NotificationEvent(
            recipient_id=post_author_id,
            notification_type=NotificationType.NEW_COMMENT,
            object_id=comment.id,
            related_object_id=comment.post_id,
            actor_id=comment.user_id,
            content=NEW_COMMENT_MESSAGE,
        )
        return await self._publish_quietly(post_author_id, event)

    async def _publish_quietly(
        self, recipient_id: UUID, event: NotificationEvent
    ) -> int | None:
        try:
            return await self.publish(recipient_id, event)
        except CacheError as e:
            logger.error(
                "notification_publish_failed",
                recipient_id=str(recipient_id),
                notification_type=event.notification_type.value,
                error=str(e),
            )
            return None
