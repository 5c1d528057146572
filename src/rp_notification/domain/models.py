"""Domain models for rp_notification — pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Notification:
    id: int                              # BIGSERIAL
    user_id: str
    title: str
    message: str
    type: str                            # NotificationType value
    priority: str                        # NotificationPriority value
    action_url: str | None = None
    related_entity_id: str | None = None
    related_entity_type: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class NotificationStats:
    total: int
    unread: int
    by_type: dict[str, int]


@dataclass
class PresenceInfo:
    user_id: str
    state: str                           # "active" | "background" | "inactive"
    screen: str | None = None
    chat_id: str | None = None
    last_seen: str | None = None         # ISO8601

    @property
    def is_active(self) -> bool:
        return self.state == "active"
