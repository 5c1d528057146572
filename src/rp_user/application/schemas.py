"""Pydantic schemas for the rp_user API."""

from pydantic import BaseModel, Field

from src.rp_common.credits import credits_to_display
from src.rp_user.domain.models import Transaction, User, UserSettings

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class UpdateProfileRequest(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=100)


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=255)


class NotificationPreferencesUpdate(BaseModel):
    push_notifications: bool | None = None
    bet_created_notifications: bool | None = None
    bet_cancelled_notifications: bool | None = None
    bet_result_notifications: bool | None = None
    bet_deadline_notifications: bool | None = None
    bet_resolution_reminder_notifications: bool | None = None
    bet_fulfillment_notifications: bool | None = None
    group_join_request_notifications: bool | None = None
    group_invite_notifications: bool | None = None
    group_member_joined_notifications: bool | None = None
    group_member_left_notifications: bool | None = None
    group_role_changed_notifications: bool | None = None
    group_deleted_notifications: bool | None = None
    system_announcement_notifications: bool | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PublicUserResponse(BaseModel):
    user_id: str
    username: str
    display_name: str
    total_wins: int
    total_losses: int

    @classmethod
    def from_domain(cls, user: User) -> "PublicUserResponse":
        return cls(
            user_id=user.id,
            username=user.username,
            display_name=user.name,
            total_wins=user.total_wins,
            total_losses=user.total_losses,
        )


class UserProfileResponse(BaseModel):
    user_id: str
    username: str
    email: str
    display_name: str
    credit_balance: int
    credit_balance_display: str
    total_wins: int
    total_losses: int
    current_streak: int
    longest_streak: int
    active_bets: int
    has_push_token: bool
    created_at: str | None

    @classmethod
    def from_domain(cls, user: User) -> "UserProfileResponse":
        return cls(
            user_id=user.id,
            username=user.username,
            email=user.email,
            display_name=user.name,
            credit_balance=user.credit_balance,
            credit_balance_display=credits_to_display(user.credit_balance),
            total_wins=user.total_wins,
            total_losses=user.total_losses,
            current_streak=user.current_streak,
            longest_streak=user.longest_streak,
            active_bets=user.active_bets,
            has_push_token=user.expo_push_token is not None,
            created_at=user.created_at.isoformat() if user.created_at else None,
        )


class UserStatsResponse(BaseModel):
    user_id: str
    total_wins: int
    total_losses: int
    total_games: int
    win_rate: float
    current_streak: int
    longest_streak: int
    active_bets: int

    @classmethod
    def from_domain(cls, user: User) -> "UserStatsResponse":
        return cls(
            user_id=user.id,
            total_wins=user.total_wins,
            total_losses=user.total_losses,
            total_games=user.total_games,
            win_rate=user.win_rate,
            current_streak=user.current_streak,
            longest_streak=user.longest_streak,
            active_bets=user.active_bets,
        )


class TransactionItem(BaseModel):
    id: int
    type: str
    amount: int
    amount_display: str
    reason: str
    correlation_id: str | None
    balance_before: int
    balance_after: int
    created_at: str

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionItem":
        return cls(
            id=tx.id,
            type=tx.type,
            amount=tx.amount,
            amount_display=credits_to_display(tx.amount),
            reason=tx.reason,
            correlation_id=tx.correlation_id,
            balance_before=tx.balance_before,
            balance_after=tx.balance_after,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class NotificationPreferencesResponse(BaseModel):
    push_notifications: bool
    bet_created_notifications: bool
    bet_cancelled_notifications: bool
    bet_result_notifications: bool
    bet_deadline_notifications: bool
    bet_resolution_reminder_notifications: bool
    bet_fulfillment_notifications: bool
    group_join_request_notifications: bool
    group_invite_notifications: bool
    group_member_joined_notifications: bool
    group_member_left_notifications: bool
    group_role_changed_notifications: bool
    group_deleted_notifications: bool
    system_announcement_notifications: bool

    @classmethod
    def from_domain(cls, s: UserSettings) -> "NotificationPreferencesResponse":
        return cls(**{name: getattr(s, name) for name in UserSettings.flag_names()})
