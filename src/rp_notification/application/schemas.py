"""Pydantic schemas for the rp_notification API."""

from typing import Literal

from pydantic import BaseModel, Field

from src.rp_notification.domain.models import Notification, NotificationStats, PresenceInfo


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    priority: str
    action_url: str | None
    related_entity_id: str | None
    related_entity_type: str | None
    is_read: bool
    read_at: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, n: Notification) -> "NotificationResponse":
        return cls(
            id=n.id,
            title=n.title,
            message=n.message,
            type=n.type,
            priority=n.priority,
            action_url=n.action_url,
            related_entity_id=n.related_entity_id,
            related_entity_type=n.related_entity_type,
            is_read=n.is_read,
            read_at=n.read_at.isoformat() if n.read_at else None,
            created_at=n.created_at.isoformat() if n.created_at else None,
        )


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    next_cursor: str | None
    has_more: bool


class UnreadCountResponse(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int


class NotificationStatsResponse(BaseModel):
    total: int
    unread: int
    by_type: dict[str, int]

    @classmethod
    def from_domain(cls, s: NotificationStats) -> "NotificationStatsResponse":
        return cls(total=s.total, unread=s.unread, by_type=s.by_type)


class PresenceUpdateRequest(BaseModel):
    state: Literal["active", "background", "inactive"]
    screen: str | None = Field(None, max_length=100)
    chat_id: str | None = Field(None, max_length=64)


class PresenceResponse(BaseModel):
    user_id: str
    state: str
    screen: str | None
    chat_id: str | None
    last_seen: str | None

    @classmethod
    def from_domain(cls, p: PresenceInfo) -> "PresenceResponse":
        return cls(
            user_id=p.user_id,
            state=p.state,
            screen=p.screen,
            chat_id=p.chat_id,
            last_seen=p.last_seen,
        )
