"""Notification events delivered over pub/sub.

Notifications are ephemeral: an event is published on the recipient's
channel and delivered to whichever websocket connections are subscribed at
that moment. Nothing is persisted or replayed.

Notification types:
- COMMENT_REPLY: Someone replied to the recipient's comment
- NEW_COMMENT: Someone commented on the recipient's post
- POST_LIKE, FOLLOWER_UPDATE, SYSTEM_MESSAGE: Published by other services
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


REPLY_MESSAGE = "You have a new reply to your comment."
NEW_COMMENT_MESSAGE = "New comment on your post"


class NotificationType(str, Enum):
    """Types of notifications."""

    COMMENT_REPLY = "comment_reply"
    NEW_COMMENT = "new_comment"
    POST_LIKE = "post_like"
    FOLLOWER_UPDATE = "follower_update"
    SYSTEM_MESSAGE = "system_message"


class NotificationEvent(BaseModel):
    """Payload published on ``notifications:user:{recipient_id}``.

    ``object_id`` is the object the event is about (the new comment) and
    ``related_object_id`` its container (the post).
    """

    recipient_id: UUID
    notification_type: NotificationType
    object_id: int
    related_object_id: int | None = None
    actor_id: UUID
    content: str
