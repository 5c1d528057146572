"""Repository Protocol for users, credit transactions and settings.

Unit tests inject a mock that conforms to this Protocol.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_user.domain.models import Transaction, User, UserSettings


class UserRepositoryProtocol(Protocol):
    async def get_user(self, db: AsyncSession, user_id: str) -> User | None: ...

    async def get_users(self, db: AsyncSession, user_ids: list[str]) -> list[User]: ...

    async def search_users(self, db: AsyncSession, query: str, limit: int) -> list[User]: ...

    async def update_display_name(
        self, db: AsyncSession, user_id: str, display_name: str
    ) -> User | None: ...

    async def soft_delete(self, db: AsyncSession, user_id: str) -> bool: ...

    async def add_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        correlation_id: str | None,
    ) -> Transaction: ...

    async def deduct_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        correlation_id: str | None,
    ) -> Transaction: ...

    async def record_win(self, db: AsyncSession, user_id: str) -> None: ...

    async def record_loss(self, db: AsyncSession, user_id: str) -> None: ...

    async def increment_active_bets(self, db: AsyncSession, user_id: str) -> None: ...

    async def decrement_active_bets(self, db: AsyncSession, user_id: str) -> None: ...

    async def list_transactions(
        self, db: AsyncSession, user_id: str, cursor_id: int | None, limit: int
    ) -> list[Transaction]: ...

    async def get_settings(self, db: AsyncSession, user_id: str) -> UserSettings | None: ...

    async def update_settings(
        self, db: AsyncSession, user_id: str, changes: dict[str, Any]
    ) -> UserSettings: ...

    async def set_push_token(
        self, db: AsyncSession, user_id: str, token: str | None
    ) -> None: ...
