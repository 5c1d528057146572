"""InsuranceRepository — bet insurance items and their remaining uses."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.domain.models import InsuranceItem

_ITEM_COLUMNS = "id, user_id, tier, uses_remaining, is_active, created_at"

_GET_ITEM_SQL = text(f"SELECT {_ITEM_COLUMNS} FROM insurance_items WHERE id = :item_id")

# Decrement only when the item is owned, active and has uses left
_CONSUME_USE_SQL = text("""
    UPDATE insurance_items
    SET uses_remaining = uses_remaining - 1,
        is_active = (uses_remaining - 1) > 0
    WHERE id = :item_id AND user_id = :user_id
      AND is_active = TRUE AND uses_remaining > 0
    RETURNING id
""")

_RESTORE_USE_SQL = text("""
    UPDATE insurance_items
    SET uses_remaining = uses_remaining + 1, is_active = TRUE
    WHERE id = :item_id
""")

_LIST_AVAILABLE_SQL = text(f"""
    SELECT {_ITEM_COLUMNS} FROM insurance_items
    WHERE user_id = :user_id AND is_active = TRUE AND uses_remaining > 0
    ORDER BY created_at
""")

_INSERT_ITEM_SQL = text(f"""
    INSERT INTO insurance_items (user_id, tier, uses_remaining)
    VALUES (:user_id, :tier, :uses)
    RETURNING {_ITEM_COLUMNS}
""")


def _row_to_item(row: object) -> InsuranceItem:
    return InsuranceItem(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        tier=row.tier,  # type: ignore[attr-defined]
        uses_remaining=row.uses_remaining,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class InsuranceRepository:
    async def get_item(self, db: AsyncSession, item_id: str) -> InsuranceItem | None:
        result = await db.execute(_GET_ITEM_SQL, {"item_id": item_id})
        row = result.fetchone()
        return _row_to_item(row) if row is not None else None

    async def consume_use(self, db: AsyncSession, item_id: str, user_id: str) -> bool:
        result = await db.execute(_CONSUME_USE_SQL, {"item_id": item_id, "user_id": user_id})
        return result.fetchone() is not None

    async def restore_use(self, db: AsyncSession, item_id: str) -> None:
        await db.execute(_RESTORE_USE_SQL, {"item_id": item_id})

    async def list_available(self, db: AsyncSession, user_id: str) -> list[InsuranceItem]:
        result = await db.execute(_LIST_AVAILABLE_SQL, {"user_id": user_id})
        return [_row_to_item(r) for r in result.fetchall()]

    async def insert_item(
        self, db: AsyncSession, user_id: str, tier: str, uses: int
    ) -> InsuranceItem:
        result = await db.execute(_INSERT_ITEM_SQL, {"user_id": user_id, "tier": tier, "uses": uses})
        return _row_to_item(result.fetchone())
