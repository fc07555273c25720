"""WebSocket API for real-time notifications.

Provides:
- WS /ws/notifications - Real-time notification stream

Each connection owns three tasks: a forwarder (pub/sub to client), a
heartbeat and a reader (client frames). The first one to finish, for any
reason, tears down the other two and the connection.
"""

import asyncio
import contextlib
from uuid import UUID

import orjson
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from blogapi.auth.security import AuthenticationError, authenticate_token
from blogapi.core.context import set_user_id
from blogapi.core.logging import get_logger

from .dependencies import NotificationServiceDep
from .service import NotificationService


logger = get_logger(__name__)

router = APIRouter(tags=["notifications-ws"])

WS_AUTH_FAILED = 4001
DEFAULT_HEARTBEAT_INTERVAL = 30.0


async def forward_notifications(
    websocket: WebSocket,
    service: NotificationService,
    user_id: UUID,
) -> None:
    """Subscribe to the user's channel and forward events to the client."""
    async with contextlib.aclosing(service.subscribe(user_id)) as events:
        logger.info("notifications_subscribed", user_id=str(user_id))
        async for event in events:
            await websocket.send_json(
                {"type": "notification", "data": event.model_dump(mode="json")}
            )


async def send_heartbeats(websocket: WebSocket, interval: float) -> None:
    """Send an application-level ping every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        await websocket.send_json({"type": "ping"})


async def read_client_frames(websocket: WebSocket) -> None:
    """Answer client pings until the client disconnects."""
    while True:
        text = await websocket.receive_text()
        try:
            message = orjson.loads(text)
        except orjson.JSONDecodeError:
            logger.debug("websocket_invalid_frame", size=len(text))
            continue

        if not isinstance(message, dict):
            continue
        if message.get("type") == "ping":
            await websocket.send_json({"type": "pong"})
        # "pong" answers our heartbeat; nothing to do


@router.websocket("/ws/notifications")
async def notifications_websocket(
    websocket: WebSocket,
    notification_service: NotificationServiceDep,
    token: str | None = Query(None, description="JWT access token"),
) -> None:
    """WebSocket endpoint for real-time notifications.

    Connect with: ws://host/ws/notifications?token=<jwt_token>

    Messages received:
    - {"type": "connected", "user_id": "..."} - Authentication succeeded
    - {"type": "notification", "data": {...}} - New notification
    - {"type": "ping"} - Keep-alive ping (every 30s)
    - {"error": "..."} - Authentication failed (then closed with 4001)

    Messages you can send:
    - {"type": "ping"} - Answered with {"type": "pong"}
    - {"type": "pong"} - Response to ping
    """
    try:
        user = authenticate_token(token)
    except AuthenticationError as e:
        logger.warning("websocket_auth_failed", error=e.message)
        await websocket.accept()
        await websocket.send_json({"error": e.message})
        await websocket.close(code=WS_AUTH_FAILED)
        return

    set_user_id(user.id)
    user_id_str = str(user.id)

    await websocket.accept()
    await websocket.send_json({"type": "connected", "user_id": user_id_str})
    logger.info("websocket_connected", user_id=user_id_str)

    settings = getattr(websocket.app.state, "settings", None)
    interval = (
        settings.websocket_heartbeat_interval if settings else DEFAULT_HEARTBEAT_INTERVAL
    )

    tasks = [
        asyncio.create_task(send_heartbeats(websocket, interval), name="ws_heartbeat"),
        asyncio.create_task(read_client_frames(websocket), name="ws_reader"),
    ]
    if notification_service.enabled:
        tasks.append(
            asyncio.create_task(
                forward_notifications(websocket, notification_service, user.id),
                name="ws_forwarder",
            )
        )
    else:
        logger.warning("notifications_pubsub_unavailable", user_id=user_id_str)

    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.warning(
                    "websocket_task_failed",
                    user_id=user_id_str,
                    task=task.get_name(),
                    error=str(error),
                )
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            with contextlib.suppress(RuntimeError, WebSocketDisconnect):
                await websocket.close()

        logger.info("websocket_disconnected", user_id=user_id_str)
