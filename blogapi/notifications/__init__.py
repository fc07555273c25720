"""Notifications module: realtime fan-out of user notifications.

Provides:
- Publishing notification events on per-user pub/sub channels
- Websocket delivery to connected clients

Note: Router is imported directly in main.py to avoid circular imports.
"""

from blogapi.notifications.models import NotificationEvent, NotificationType
from blogapi.notifications.service import NotificationService


__all__ = [
    "NotificationEvent",
    "NotificationService",
    "NotificationType",
]
