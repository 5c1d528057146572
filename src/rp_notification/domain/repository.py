"""Repository Protocol for notifications."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_notification.domain.models import Notification, NotificationStats


class NotificationRepositoryProtocol(Protocol):
    async def create(
        self,
        db: AsyncSession,
        user_id: str,
        title: str,
        message: str,
        notification_type: str,
        priority: str,
        action_url: str | None,
        related_entity_id: str | None,
        related_entity_type: str | None,
    ) -> Notification: ...

    async def get(self, db: AsyncSession, notification_id: int) -> Notification | None: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        unread_only: bool,
        cursor_id: int | None,
        limit: int,
    ) -> list[Notification]: ...

    async def count_unread(self, db: AsyncSession, user_id: str) -> int: ...

    async def mark_read(self, db: AsyncSession, notification_id: int) -> Notification | None: ...

    async def mark_all_read(self, db: AsyncSession, user_id: str) -> int: ...

    async def get_stats(self, db: AsyncSession, user_id: str) -> NotificationStats: ...

    async def delete_by_related_entity(
        self,
        db: AsyncSession,
        related_entity_id: str,
        related_entity_type: str,
        notification_type: str,
    ) -> int: ...
