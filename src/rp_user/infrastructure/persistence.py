"""UserRepository — concrete implementation of UserRepositoryProtocol.

Credit mutations are single atomic UPDATE ... RETURNING statements; a
deduct that matches 0 rows means the balance was too low. Every mutation
writes a `transactions` row with the balance before and after.

Transaction ownership: the calling application service commits.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.enums import TransactionType
from src.rp_common.errors import InsufficientCreditsError, InvalidAmountError, UserNotFoundError
from src.rp_user.domain.models import Transaction, User, UserSettings

_USER_COLUMNS = """
    id, username, email, display_name, credit_balance,
    total_wins, total_losses, current_streak, longest_streak, active_bets,
    is_active, expo_push_token, deleted_at, created_at
"""

_GET_USER_SQL = text(f"SELECT {_USER_COLUMNS} FROM users WHERE id = :user_id")

_GET_USERS_SQL = text(f"""
    SELECT {_USER_COLUMNS} FROM users
    WHERE id = ANY(CAST(:user_ids AS UUID[]))
""")

_SEARCH_USERS_SQL = text(f"""
    SELECT {_USER_COLUMNS} FROM users
    WHERE deleted_at IS NULL
      AND is_active = TRUE
      AND (username ILIKE :pattern OR display_name ILIKE :pattern)
    ORDER BY username
    LIMIT :limit
""")

_UPDATE_DISPLAY_NAME_SQL = text(f"""
    UPDATE users SET display_name = :display_name
    WHERE id = :user_id AND deleted_at IS NULL
    RETURNING {_USER_COLUMNS}
""")

_SOFT_DELETE_SQL = text("""
    UPDATE users
    SET deleted_at = NOW(), is_active = FALSE, expo_push_token = NULL
    WHERE id = :user_id AND deleted_at IS NULL
    RETURNING id
""")

_ADD_CREDITS_SQL = text("""
    UPDATE users SET credit_balance = credit_balance + :amount
    WHERE id = :user_id
    RETURNING credit_balance
""")

_DEDUCT_CREDITS_SQL = text("""
    UPDATE users SET credit_balance = credit_balance - :amount
    WHERE id = :user_id AND credit_balance >= :amount
    RETURNING credit_balance
""")

_GET_BALANCE_SQL = text("SELECT credit_balance FROM users WHERE id = :user_id")

_INSERT_TRANSACTION_SQL = text("""
    INSERT INTO transactions
        (user_id, type, amount, reason, correlation_id, balance_before, balance_after)
    VALUES
        (:user_id, :type, :amount, :reason, :correlation_id, :balance_before, :balance_after)
    RETURNING id, user_id, type, amount, reason, correlation_id,
              balance_before, balance_after, created_at
""")

_RECORD_WIN_SQL = text("""
    UPDATE users
    SET total_wins = total_wins + 1,
        current_streak = current_streak + 1,
        longest_streak = GREATEST(longest_streak, current_streak + 1)
    WHERE id = :user_id
""")

_RECORD_LOSS_SQL = text("""
    UPDATE users
    SET total_losses = total_losses + 1,
        current_streak = 0
    WHERE id = :user_id
""")

_INCREMENT_ACTIVE_BETS_SQL = text("""
    UPDATE users SET active_bets = active_bets + 1 WHERE id = :user_id
""")

_DECREMENT_ACTIVE_BETS_SQL = text("""
    UPDATE users SET active_bets = GREATEST(active_bets - 1, 0) WHERE id = :user_id
""")

_LIST_TRANSACTIONS_SQL = text("""
    SELECT id, user_id, type, amount, reason, correlation_id,
           balance_before, balance_after, created_at
    FROM transactions
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_SET_PUSH_TOKEN_SQL = text("""
    UPDATE users SET expo_push_token = :token WHERE id = :user_id
""")

_SETTINGS_COLUMNS = ", ".join(["user_id", *UserSettings.flag_names()])

_GET_SETTINGS_SQL = text(f"SELECT {_SETTINGS_COLUMNS} FROM user_settings WHERE user_id = :user_id")


def _row_to_user(row: object) -> User:
    return User(
        id=str(row.id),  # type: ignore[attr-defined]
        username=row.username,  # type: ignore[attr-defined]
        email=row.email,  # type: ignore[attr-defined]
        display_name=row.display_name,  # type: ignore[attr-defined]
        credit_balance=row.credit_balance,  # type: ignore[attr-defined]
        total_wins=row.total_wins,  # type: ignore[attr-defined]
        total_losses=row.total_losses,  # type: ignore[attr-defined]
        current_streak=row.current_streak,  # type: ignore[attr-defined]
        longest_streak=row.longest_streak,  # type: ignore[attr-defined]
        active_bets=row.active_bets,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        expo_push_token=row.expo_push_token,  # type: ignore[attr-defined]
        deleted_at=row.deleted_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_transaction(row: object) -> Transaction:
    return Transaction(
        id=row.id,  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        type=row.type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        correlation_id=row.correlation_id,  # type: ignore[attr-defined]
        balance_before=row.balance_before,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_settings(row: object) -> UserSettings:
    values = {name: getattr(row, name) for name in UserSettings.flag_names()}
    return UserSettings(user_id=str(row.user_id), **values)  # type: ignore[attr-defined]


class UserRepository:
    """Concrete repository — credit changes are atomic at the SQL level."""

    async def get_user(self, db: AsyncSession, user_id: str) -> User | None:
        result = await db.execute(_GET_USER_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_user(row) if row is not None else None

    async def get_users(self, db: AsyncSession, user_ids: list[str]) -> list[User]:
        if not user_ids:
            return []
        result = await db.execute(_GET_USERS_SQL, {"user_ids": list(user_ids)})
        return [_row_to_user(r) for r in result.fetchall()]

    async def search_users(self, db: AsyncSession, query: str, limit: int) -> list[User]:
        result = await db.execute(
            _SEARCH_USERS_SQL, {"pattern": f"%{query}%", "limit": limit}
        )
        return [_row_to_user(r) for r in result.fetchall()]

    async def update_display_name(
        self, db: AsyncSession, user_id: str, display_name: str
    ) -> User | None:
        result = await db.execute(
            _UPDATE_DISPLAY_NAME_SQL, {"user_id": user_id, "display_name": display_name}
        )
        row = result.fetchone()
        return _row_to_user(row) if row is not None else None

    async def soft_delete(self, db: AsyncSession, user_id: str) -> bool:
        result = await db.execute(_SOFT_DELETE_SQL, {"user_id": user_id})
        return result.fetchone() is not None

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
        result = await db.execute(_ADD_CREDITS_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise UserNotFoundError(user_id)
        balance_after = row.credit_balance  # type: ignore[attr-defined]
        return await self._insert_transaction(
            db, user_id, TransactionType.CREDIT, amount, reason, correlation_id,
            balance_after - amount, balance_after,
        )

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
        result = await db.execute(_DEDUCT_CREDITS_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            balance = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id})
            current = balance.fetchone()
            if current is None:
                raise UserNotFoundError(user_id)
            raise InsufficientCreditsError(
                required=amount,
                available=current.credit_balance,  # type: ignore[attr-defined]
            )
        balance_after = row.credit_balance  # type: ignore[attr-defined]
        return await self._insert_transaction(
            db, user_id, TransactionType.DEBIT, amount, reason, correlation_id,
            balance_after + amount, balance_after,
        )

    async def _insert_transaction(
        self,
        db: AsyncSession,
        user_id: str,
        tx_type: TransactionType,
        amount: int,
        reason: str,
        correlation_id: str | None,
        balance_before: int,
        balance_after: int,
    ) -> Transaction:
        result = await db.execute(
            _INSERT_TRANSACTION_SQL,
            {
                "user_id": user_id,
                "type": tx_type.value,
                "amount": amount,
                "reason": reason,
                "correlation_id": correlation_id,
                "balance_before": balance_before,
                "balance_after": balance_after,
            },
        )
        return _row_to_transaction(result.fetchone())

    async def record_win(self, db: AsyncSession, user_id: str) -> None:
        await db.execute(_RECORD_WIN_SQL, {"user_id": user_id})

    async def record_loss(self, db: AsyncSession, user_id: str) -> None:
        await db.execute(_RECORD_LOSS_SQL, {"user_id": user_id})

    async def increment_active_bets(self, db: AsyncSession, user_id: str) -> None:
        await db.execute(_INCREMENT_ACTIVE_BETS_SQL, {"user_id": user_id})

    async def decrement_active_bets(self, db: AsyncSession, user_id: str) -> None:
        await db.execute(_DECREMENT_ACTIVE_BETS_SQL, {"user_id": user_id})

    async def list_transactions(
        self, db: AsyncSession, user_id: str, cursor_id: int | None, limit: int
    ) -> list[Transaction]:
        result = await db.execute(
            _LIST_TRANSACTIONS_SQL,
            {"user_id": user_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_transaction(r) for r in result.fetchall()]

    async def get_settings(self, db: AsyncSession, user_id: str) -> UserSettings | None:
        result = await db.execute(_GET_SETTINGS_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_settings(row) if row is not None else None

    async def update_settings(
        self, db: AsyncSession, user_id: str, changes: dict[str, Any]
    ) -> UserSettings:
        allowed = set(UserSettings.flag_names())
        columns = [name for name in changes if name in allowed]
        if not columns:
            current = await self.get_settings(db, user_id)
            return current or UserSettings(user_id=user_id)

        # Column names come from the UserSettings whitelist, never from input
        insert_cols = ", ".join(["user_id", *columns])
        insert_vals = ", ".join([":user_id", *[f":{c}" for c in columns]])
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)
        stmt = text(f"""
            INSERT INTO user_settings ({insert_cols}) VALUES ({insert_vals})
            ON CONFLICT (user_id) DO UPDATE SET {updates}
            RETURNING {_SETTINGS_COLUMNS}
        """)
        params = {"user_id": user_id, **{c: bool(changes[c]) for c in columns}}
        result = await db.execute(stmt, params)
        return _row_to_settings(result.fetchone())

    async def set_push_token(
        self, db: AsyncSession, user_id: str, token: str | None
    ) -> None:
        await db.execute(_SET_PUSH_TOKEN_SQL, {"user_id": user_id, "token": token})
