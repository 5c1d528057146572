"""Domain models for rp_user — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, fields
from datetime import datetime

from src.rp_common.enums import NotificationType


@dataclass
class User:
    id: str
    username: str
    email: str
    display_name: str | None
    credit_balance: int        # hundredths of a credit
    total_wins: int = 0
    total_losses: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    active_bets: int = 0
    is_active: bool = True
    expo_push_token: str | None = None
    deleted_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def name(self) -> str:
        return self.display_name or self.username

    @property
    def total_games(self) -> int:
        return self.total_wins + self.total_losses

    @property
    def win_rate(self) -> float:
        """Share of decided bets won, 0.0 when the user has none."""
        if self.total_games == 0:
            return 0.0
        return round(self.total_wins / self.total_games, 4)


@dataclass
class Transaction:
    id: int                    # BIGSERIAL
    user_id: str
    type: str                  # TransactionType value
    amount: int                # always positive; direction comes from `type`
    reason: str
    balance_before: int
    balance_after: int
    correlation_id: str | None = None
    created_at: datetime | None = None


@dataclass
class UserSettings:
    user_id: str
    push_notifications: bool = True
    bet_created_notifications: bool = True
    bet_cancelled_notifications: bool = True
    bet_result_notifications: bool = True
    bet_deadline_notifications: bool = True
    bet_resolution_reminder_notifications: bool = True
    bet_fulfillment_notifications: bool = True
    group_join_request_notifications: bool = True
    group_invite_notifications: bool = True
    group_member_joined_notifications: bool = True
    group_member_left_notifications: bool = True
    group_role_changed_notifications: bool = True
    group_deleted_notifications: bool = True
    system_announcement_notifications: bool = True

    @classmethod
    def flag_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name != "user_id"]

    def allows(self, notification_type: NotificationType) -> bool:
        flag = NOTIFICATION_SETTING_FLAGS.get(notification_type)
        if flag is None:
            return True
        return bool(getattr(self, flag))


NOTIFICATION_SETTING_FLAGS: dict[NotificationType, str] = {
    NotificationType.BET_CREATED: "bet_created_notifications",
    NotificationType.BET_CANCELLED: "bet_cancelled_notifications",
    NotificationType.BET_RESULT: "bet_result_notifications",
    NotificationType.BET_DEADLINE: "bet_deadline_notifications",
    NotificationType.BET_RESOLUTION_REMINDER: "bet_resolution_reminder_notifications",
    NotificationType.BET_FULFILLMENT_SUBMITTED: "bet_fulfillment_notifications",
    NotificationType.GROUP_JOIN_REQUEST: "group_join_request_notifications",
    NotificationType.GROUP_INVITE: "group_invite_notifications",
    NotificationType.GROUP_JOINED: "group_member_joined_notifications",
    NotificationType.GROUP_LEFT: "group_member_left_notifications",
    NotificationType.GROUP_ROLE_CHANGED: "group_role_changed_notifications",
    NotificationType.GROUP_DELETED: "group_deleted_notifications",
    NotificationType.SYSTEM_ANNOUNCEMENT: "system_announcement_notifications",
}
