"""NotificationRepository — raw SQL over the notifications table."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_notification.domain.models import Notification, NotificationStats

_COLUMNS = """
    id, user_id, title, message, type, priority, action_url,
    related_entity_id, related_entity_type, is_read, read_at, created_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO notifications
        (user_id, title, message, type, priority, action_url,
         related_entity_id, related_entity_type)
    VALUES
        (:user_id, :title, :message, :type, :priority, :action_url,
         :related_entity_id, :related_entity_type)
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM notifications WHERE id = :notification_id")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS} FROM notifications
    WHERE user_id = :user_id
      AND (:unread_only = FALSE OR is_read = FALSE)
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_COUNT_UNREAD_SQL = text("""
    SELECT COUNT(*) FROM notifications WHERE user_id = :user_id AND is_read = FALSE
""")

_MARK_READ_SQL = text(f"""
    UPDATE notifications
    SET is_read = TRUE, read_at = COALESCE(read_at, NOW())
    WHERE id = :notification_id
    RETURNING {_COLUMNS}
""")

_MARK_ALL_READ_SQL = text("""
    UPDATE notifications SET is_read = TRUE, read_at = NOW()
    WHERE user_id = :user_id AND is_read = FALSE
""")

_STATS_SQL = text("""
    SELECT type,
           COUNT(*) AS total,
           COUNT(*) FILTER (WHERE is_read = FALSE) AS unread
    FROM notifications
    WHERE user_id = :user_id
    GROUP BY type
""")

_DELETE_BY_ENTITY_SQL = text("""
    DELETE FROM notifications
    WHERE related_entity_id = :related_entity_id
      AND related_entity_type = :related_entity_type
      AND type = :type
""")


def _row_to_notification(row: object) -> Notification:
    return Notification(
        id=row.id,  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        title=row.title,  # type: ignore[attr-defined]
        message=row.message,  # type: ignore[attr-defined]
        type=row.type,  # type: ignore[attr-defined]
        priority=row.priority,  # type: ignore[attr-defined]
        action_url=row.action_url,  # type: ignore[attr-defined]
        related_entity_id=row.related_entity_id,  # type: ignore[attr-defined]
        related_entity_type=row.related_entity_type,  # type: ignore[attr-defined]
        is_read=row.is_read,  # type: ignore[attr-defined]
        read_at=row.read_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class NotificationRepository:
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
    ) -> Notification:
        result = await db.execute(
            _INSERT_SQL,
            {
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": notification_type,
                "priority": priority,
                "action_url": action_url,
                "related_entity_id": related_entity_id,
                "related_entity_type": related_entity_type,
            },
        )
        return _row_to_notification(result.fetchone())

    async def get(self, db: AsyncSession, notification_id: int) -> Notification | None:
        result = await db.execute(_GET_SQL, {"notification_id": notification_id})
        row = result.fetchone()
        return _row_to_notification(row) if row is not None else None

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        unread_only: bool,
        cursor_id: int | None,
        limit: int,
    ) -> list[Notification]:
        result = await db.execute(
            _LIST_SQL,
            {
                "user_id": user_id,
                "unread_only": unread_only,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_notification(r) for r in result.fetchall()]

    async def count_unread(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(_COUNT_UNREAD_SQL, {"user_id": user_id})
        return int(result.scalar_one())

    async def mark_read(self, db: AsyncSession, notification_id: int) -> Notification | None:
        result = await db.execute(_MARK_READ_SQL, {"notification_id": notification_id})
        row = result.fetchone()
        return _row_to_notification(row) if row is not None else None

    async def mark_all_read(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(_MARK_ALL_READ_SQL, {"user_id": user_id})
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def get_stats(self, db: AsyncSession, user_id: str) -> NotificationStats:
        result = await db.execute(_STATS_SQL, {"user_id": user_id})
        by_type: dict[str, int] = {}
        total = unread = 0
        for row in result.fetchall():
            by_type[row.type] = row.total  # type: ignore[attr-defined]
            total += row.total  # type: ignore[attr-defined]
            unread += row.unread  # type: ignore[attr-defined]
        return NotificationStats(total=total, unread=unread, by_type=by_type)

    async def delete_by_related_entity(
        self,
        db: AsyncSession,
        related_entity_id: str,
        related_entity_type: str,
        notification_type: str,
    ) -> int:
        result = await db.execute(
            _DELETE_BY_ENTITY_SQL,
            {
                "related_entity_id": related_entity_id,
                "related_entity_type": related_entity_type,
                "type": notification_type,
            },
        )
        return result.rowcount or 0  # type: ignore[attr-defined]
