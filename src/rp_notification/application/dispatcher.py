"""NotificationDispatcher — real-time delivery of stored notifications.

Routing by presence:
  active    WebSocket push (skipped while the user is viewing the related chat)
  otherwise Expo push notification, when enabled and a token is registered

Delivery is best effort: the notification row is already committed, so a
failed push is logged and dropped.
"""

import logging
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rp_notification.application.presence_service import PresenceService
from src.rp_notification.application.schemas import NotificationResponse
from src.rp_notification.domain.models import Notification, PresenceInfo
from src.rp_notification.infrastructure.websocket_manager import (
    WebSocketManager,
    websocket_manager,
)
from src.rp_user.domain.repository import UserRepositoryProtocol
from src.rp_user.infrastructure.persistence import UserRepository

logger = logging.getLogger("rp.push")


class NotificationDispatcher:
    def __init__(
        self,
        presence: PresenceService | None = None,
        ws_manager: WebSocketManager | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._presence = presence or PresenceService()
        self._ws = ws_manager or websocket_manager
        self._user_repo: UserRepositoryProtocol = user_repo or UserRepository()
        self._http_client = http_client

    async def _presence_of(self, user_id: str) -> PresenceInfo:
        try:
            return await self._presence.get(user_id)
        except Exception:
            logger.warning("Presence lookup failed for user %s", user_id, exc_info=True)
            return PresenceInfo(user_id=user_id, state="inactive")

    async def send_to_user(
        self,
        db: AsyncSession,
        user_id: str,
        notification: Notification,
        chat_id: str | None = None,
    ) -> str:
        """Deliver one notification; returns the channel used ("websocket", "push", "skipped")."""
        presence = await self._presence_of(user_id)
        if presence.is_active:
            if chat_id is not None and presence.chat_id == chat_id:
                return "skipped"
            message = {
                "type": "notification",
                "data": NotificationResponse.from_domain(notification).model_dump(),
            }
            if await self._ws.send_to_user(user_id, message) > 0:
                return "websocket"
        if await self._send_push(db, user_id, notification):
            return "push"
        return "skipped"

    async def _send_push(self, db: AsyncSession, user_id: str, notification: Notification) -> bool:
        user = await self._user_repo.get_user(db, user_id)
        if user is None or not user.expo_push_token:
            logger.debug("No push token for user %s; notification %s stays in-app", user_id, notification.id)
            return False
        user_settings = await self._user_repo.get_settings(db, user_id)
        if user_settings is not None and not user_settings.push_notifications:
            return False
        if not settings.PUSH_ENABLED:
            logger.info(
                "Push disabled; would send to user=%s title=%r", user_id, notification.title
            )
            return False

        payload: dict[str, Any] = {
            "to": user.expo_push_token,
            "title": notification.title,
            "body": notification.message,
            "priority": "high" if notification.priority in ("HIGH", "URGENT") else "default",
            "sound": "default",
            "data": {
                "notification_id": notification.id,
                "type": notification.type,
                "action_url": notification.action_url,
            },
        }
        try:
            if self._http_client is not None:
                response = await self._http_client.post(settings.EXPO_PUSH_URL, json=payload)
            else:
                async with httpx.AsyncClient(timeout=settings.PUSH_TIMEOUT_SECONDS) as client:
                    response = await client.post(settings.EXPO_PUSH_URL, json=payload)
            response.raise_for_status()
        except httpx.HTTPError:
            logger.warning("Expo push failed for user %s", user_id, exc_info=True)
            return False
        return True
