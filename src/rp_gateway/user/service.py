"""User auth service: register, login, refresh.

All DB operations use the injected AsyncSession. Transactions are managed
by the caller (router layer) via `async with db.begin()`.
"""

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rp_common.enums import TransactionType
from src.rp_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.rp_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.rp_gateway.auth.password import hash_password, verify_password
from src.rp_gateway.user.db_models import UserModel

_INSERT_SETTINGS_SQL = text("""
    INSERT INTO user_settings (user_id) VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_INSERT_WELCOME_TX_SQL = text("""
    INSERT INTO transactions
        (user_id, type, amount, reason, balance_before, balance_after)
    VALUES
        (:user_id, :type, :amount, 'Welcome bonus', 0, :amount)
""")


class UserService:
    """Stateless service — instantiate once, reuse across requests."""

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
        display_name: str | None = None,
    ) -> UserModel:
        """Register a new user with the starting credit grant.

        Inserts into `users`, `user_settings` and `transactions` in one
        transaction. The caller must wrap this in `async with db.begin()`.
        """
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        if result.scalar_one_or_none() is not None:
            raise UsernameExistsError()

        result = await db.execute(
            select(UserModel).where(UserModel.email == email)
        )
        if result.scalar_one_or_none() is not None:
            raise EmailExistsError()

        user = UserModel(
            username=username,
            email=email,
            display_name=display_name or username,
            password_hash=hash_password(password),
            credit_balance=settings.INITIAL_CREDITS,
            is_active=True,
        )
        db.add(user)
        await db.flush()  # Get user.id without committing

        await db.execute(_INSERT_SETTINGS_SQL, {"user_id": str(user.id)})
        if settings.INITIAL_CREDITS > 0:
            await db.execute(
                _INSERT_WELCOME_TX_SQL,
                {
                    "user_id": str(user.id),
                    "type": TransactionType.CREDIT.value,
                    "amount": settings.INITIAL_CREDITS,
                },
            )
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Authenticate and return (user, access_token, refresh_token).

        Unknown user and wrong password raise the same error so usernames
        cannot be enumerated.
        """
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active or user.deleted_at is not None:
            raise AccountDisabledError()

        return (
            user,
            create_access_token(str(user.id)),
            create_refresh_token(str(user.id)),
        )

    async def refresh(self, refresh_token: str) -> str:
        """Validate refresh token and return a new access token."""
        payload = decode_token(refresh_token, expected_type="refresh")
        return create_access_token(str(payload["sub"]))
