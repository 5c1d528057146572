"""Notifier — store-and-deliver helper shared by the event handlers.

Each recipient is handled independently: a recipient whose settings switch
the type off is skipped, and a failure for one recipient is logged without
affecting the rest.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.database import async_session_factory
from src.rp_common.enums import NotificationPriority, NotificationType
from src.rp_notification.application.dispatcher import NotificationDispatcher
from src.rp_notification.application.service import NotificationService
from src.rp_user.application.service import UserApplicationService

logger = logging.getLogger("rp.notification")


class Notifier:
    def __init__(
        self,
        session_factory: Callable[[], Any] | None = None,
        notifications: NotificationService | None = None,
        users: UserApplicationService | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._notifications = notifications or NotificationService()
        self._users = users or UserApplicationService()
        self._dispatcher = dispatcher or NotificationDispatcher()

    def session(self) -> Any:
        """A fresh session; handlers never share the request's session."""
        return self._session_factory()

    async def notify(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        action_url: str | None = None,
        related_entity_id: str | None = None,
        related_entity_type: str | None = None,
    ) -> bool:
        try:
            if not await self._users.should_receive(db, user_id, notification_type):
                logger.debug("Skipping user=%s type=%s (disabled)", user_id, notification_type.value)
                return False
            notification = await self._notifications.create_notification(
                db,
                user_id,
                title,
                message,
                notification_type,
                priority,
                action_url,
                related_entity_id,
                related_entity_type,
            )
            await self._dispatcher.send_to_user(db, user_id, notification)
        except Exception:
            logger.error(
                "Failed to notify user=%s type=%s", user_id, notification_type.value, exc_info=True
            )
            return False
        return True

    async def notify_many(
        self, db: AsyncSession, user_ids: Iterable[str], **kwargs: Any
    ) -> int:
        sent = 0
        for user_id in dict.fromkeys(user_ids):
            if await self.notify(db, user_id, **kwargs):
                sent += 1
        return sent
