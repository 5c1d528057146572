"""NotificationService — stored in-app notifications.

create_notification commits on its own; listeners call it once per
recipient so one failing recipient does not roll back the others.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.enums import NotificationPriority, NotificationType
from src.rp_common.errors import NotificationAccessDeniedError, NotificationNotFoundError
from src.rp_common.pagination import cursor_decode, cursor_encode
from src.rp_common.text_utils import truncate_message, truncate_title
from src.rp_notification.application.schemas import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
    UnreadCountResponse,
)
from src.rp_notification.domain.models import Notification
from src.rp_notification.domain.repository import NotificationRepositoryProtocol
from src.rp_notification.infrastructure.persistence import NotificationRepository

MEMBERSHIP_ENTITY_TYPE = "GROUP_MEMBERSHIP"


class NotificationService:
    def __init__(self, repo: NotificationRepositoryProtocol | None = None) -> None:
        self._repo: NotificationRepositoryProtocol = repo or NotificationRepository()

    async def create_notification(
        self,
        db: AsyncSession,
        user_id: str,
        title: str,
        message: str,
        notification_type: NotificationType,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        action_url: str | None = None,
        related_entity_id: str | None = None,
        related_entity_type: str | None = None,
    ) -> Notification:
        try:
            notification = await self._repo.create(
                db,
                user_id,
                truncate_title(title),
                truncate_message(message),
                notification_type.value,
                priority.value,
                action_url,
                related_entity_id,
                related_entity_type,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return notification

    async def list_notifications(
        self,
        db: AsyncSession,
        user_id: str,
        unread_only: bool = False,
        cursor: str | None = None,
        limit: int = 20,
    ) -> NotificationListResponse:
        cursor_id = cursor_decode(cursor)
        rows = await self._repo.list_for_user(db, user_id, unread_only, cursor_id, limit + 1)
        has_more = len(rows) > limit
        items = rows[:limit]
        next_cursor = cursor_encode(items[-1].id) if has_more and items else None
        return NotificationListResponse(
            items=[NotificationResponse.from_domain(n) for n in items],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def unread_count(self, db: AsyncSession, user_id: str) -> UnreadCountResponse:
        return UnreadCountResponse(unread=await self._repo.count_unread(db, user_id))

    async def mark_read(
        self, db: AsyncSession, user_id: str, notification_id: int
    ) -> NotificationResponse:
        try:
            notification = await self._repo.get(db, notification_id)
            if notification is None:
                raise NotificationNotFoundError(notification_id)
            if notification.user_id != user_id:
                raise NotificationAccessDeniedError()
            if not notification.is_read:
                updated = await self._repo.mark_read(db, notification_id)
                notification = updated or notification
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return NotificationResponse.from_domain(notification)

    async def mark_all_read(self, db: AsyncSession, user_id: str) -> MarkAllReadResponse:
        try:
            updated = await self._repo.mark_all_read(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MarkAllReadResponse(updated=updated)

    async def get_stats(self, db: AsyncSession, user_id: str) -> NotificationStatsResponse:
        stats = await self._repo.get_stats(db, user_id)
        return NotificationStatsResponse.from_domain(stats)


    async def delete_join_request_notifications(self, db: AsyncSession, membership_id: str) -> int:
        """Drop the admins' copies of a handled join request.

        Runs inside the caller's transaction; the caller commits.
        """
        return await self._repo.delete_by_related_entity(
            db,
            membership_id,
            MEMBERSHIP_ENTITY_TYPE,
            NotificationType.GROUP_JOIN_REQUEST.value,
        )
