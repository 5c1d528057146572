"""WebSocket endpoint for real-time notification push.

Clients connect with `?token=<access token>`. Text frames:
  "ping"        answered with "pong", refreshes presence
  anything else ignored
Server frames are JSON: {"type": "notification" | "ping", "data": {...}}.
"""

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from src.rp_common.database import async_session_factory
from src.rp_gateway.auth.dependencies import resolve_user_from_token
from src.rp_notification.application.presence_service import PresenceService
from src.rp_notification.infrastructure.websocket_manager import (
    TooManyConnectionsError,
    websocket_manager,
)

logger = logging.getLogger("rp.websocket")

router = APIRouter()

_presence = PresenceService()


@router.websocket("/ws/notifications")
async def websocket_notifications(ws: WebSocket, token: str = Query("")) -> None:
    async with async_session_factory() as db:
        user = await resolve_user_from_token(token, db) if token else None
    if user is None or not user.is_active:
        await ws.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return
    user_id = str(user.id)

    try:
        connection_id = await websocket_manager.connect(ws, user_id=user_id)
    except TooManyConnectionsError:
        await ws.close(code=4002, reason="Too many connections")
        return

    try:
        while True:
            data = await ws.receive_text()
            await websocket_manager.touch(connection_id)
            if data == "ping":
                await ws.send_text("pong")
                await _presence.heartbeat(user_id)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.warning("WS receive loop failed user=%s", user_id, exc_info=True)
    finally:
        await websocket_manager.disconnect(connection_id)
