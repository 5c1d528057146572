"""UserApplicationService — profile, credits, statistics and settings.

Other modules that must change credits or statistics inside their own
transaction (bet placement, settlement, refunds) call UserRepository
directly with their session; the methods here commit on their own.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.enums import NotificationType
from src.rp_common.errors import InvalidAmountError, UserNotFoundError
from src.rp_common.pagination import cursor_decode, cursor_encode
from src.rp_user.application.schemas import (
    NotificationPreferencesResponse,
    PublicUserResponse,
    TransactionItem,
    TransactionListResponse,
    UserProfileResponse,
    UserStatsResponse,
)
from src.rp_user.domain.models import Transaction, User, UserSettings
from src.rp_user.domain.repository import UserRepositoryProtocol
from src.rp_user.infrastructure.persistence import UserRepository


class UserApplicationService:
    def __init__(self, repo: UserRepositoryProtocol | None = None) -> None:
        self._repo: UserRepositoryProtocol = repo or UserRepository()

    async def _require_user(self, db: AsyncSession, user_id: str) -> User:
        user = await self._repo.get_user(db, user_id)
        if user is None or user.deleted_at is not None:
            raise UserNotFoundError(user_id)
        return user

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_profile(self, db: AsyncSession, user_id: str) -> UserProfileResponse:
        return UserProfileResponse.from_domain(await self._require_user(db, user_id))

    async def get_user(self, db: AsyncSession, user_id: str) -> PublicUserResponse:
        return PublicUserResponse.from_domain(await self._require_user(db, user_id))

    async def update_profile(
        self, db: AsyncSession, user_id: str, display_name: str
    ) -> UserProfileResponse:
        try:
            user = await self._repo.update_display_name(db, user_id, display_name.strip())
            if user is None:
                raise UserNotFoundError(user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return UserProfileResponse.from_domain(user)

    async def search_users(
        self, db: AsyncSession, query: str, limit: int
    ) -> list[PublicUserResponse]:
        query = query.strip()
        if not query:
            return []
        users = await self._repo.search_users(db, query, limit)
        return [PublicUserResponse.from_domain(u) for u in users]

    async def soft_delete(self, db: AsyncSession, user_id: str) -> None:
        try:
            if not await self._repo.soft_delete(db, user_id):
                raise UserNotFoundError(user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    async def add_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        correlation_id: str | None = None,
    ) -> Transaction:
        if amount <= 0:
            raise InvalidAmountError(amount)
        try:
            tx = await self._repo.add_credits(db, user_id, amount, reason, correlation_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return tx

    async def deduct_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        correlation_id: str | None = None,
    ) -> Transaction:
        if amount <= 0:
            raise InvalidAmountError(amount)
        try:
            tx = await self._repo.deduct_credits(db, user_id, amount, reason, correlation_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return tx

    async def has_sufficient_credits(self, db: AsyncSession, user_id: str, amount: int) -> bool:
        user = await self._repo.get_user(db, user_id)
        return user is not None and user.credit_balance >= amount

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
    ) -> TransactionListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_transactions(db, user_id, cursor_id, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionListResponse(
            items=[TransactionItem.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def record_win(self, db: AsyncSession, user_id: str) -> None:
        try:
            await self._repo.record_win(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def record_loss(self, db: AsyncSession, user_id: str) -> None:
        try:
            await self._repo.record_loss(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def get_stats(self, db: AsyncSession, user_id: str) -> UserStatsResponse:
        return UserStatsResponse.from_domain(await self._require_user(db, user_id))

    # ------------------------------------------------------------------
    # Settings and push token
    # ------------------------------------------------------------------

    async def get_settings(self, db: AsyncSession, user_id: str) -> NotificationPreferencesResponse:
        settings = await self._repo.get_settings(db, user_id)
        return NotificationPreferencesResponse.from_domain(settings or UserSettings(user_id=user_id))

    async def update_settings(
        self, db: AsyncSession, user_id: str, changes: dict[str, Any]
    ) -> NotificationPreferencesResponse:
        try:
            settings = await self._repo.update_settings(db, user_id, changes)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return NotificationPreferencesResponse.from_domain(settings)

    async def should_receive(
        self, db: AsyncSession, user_id: str, notification_type: NotificationType
    ) -> bool:
        """True unless the user's settings switch this notification type off."""
        settings = await self._repo.get_settings(db, user_id)
        if settings is None:
            return True
        return settings.allows(notification_type)

    async def register_push_token(self, db: AsyncSession, user_id: str, token: str) -> None:
        try:
            await self._repo.set_push_token(db, user_id, token)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def clear_push_token(self, db: AsyncSession, user_id: str) -> None:
        try:
            await self._repo.set_push_token(db, user_id, None)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
