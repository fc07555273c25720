"""Dependencies for notification routes.

Provides:
- NotificationService dependency injection (HTTP and websocket routes)
"""

from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection

from .service import NotificationService


def get_notification_service(connection: HTTPConnection) -> NotificationService:
    """Get NotificationService instance from app state."""
    service = getattr(connection.app.state, "notification_service", None)
    if service is None:
        msg = "NotificationService not configured"
        raise RuntimeError(msg)
    return service


NotificationServiceDep = Annotated[
    NotificationService, Depends(get_notification_service)
]
