"""FulfillmentRepository — loser claims and winner confirmations for social stakes."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.domain.models import BetFulfillment, LoserFulfillmentClaim

_UPSERT_CLAIM_SQL = text("""
    INSERT INTO loser_fulfillment_claims (bet_id, loser_id, proof_url, proof_description)
    VALUES (:bet_id, :loser_id, :proof_url, :proof_description)
    ON CONFLICT (bet_id, loser_id) DO UPDATE
        SET proof_url = EXCLUDED.proof_url,
            proof_description = EXCLUDED.proof_description,
            claimed_at = NOW()
    RETURNING id, bet_id, loser_id, proof_url, proof_description, claimed_at
""")

_LIST_CLAIMS_SQL = text("""
    SELECT id, bet_id, loser_id, proof_url, proof_description, claimed_at
    FROM loser_fulfillment_claims
    WHERE bet_id = :bet_id
    ORDER BY claimed_at
""")

_CONFIRMATION_EXISTS_SQL = text("""
    SELECT 1 FROM bet_fulfillments WHERE bet_id = :bet_id AND winner_id = :winner_id
""")

_INSERT_CONFIRMATION_SQL = text("""
    INSERT INTO bet_fulfillments (bet_id, winner_id, notes)
    VALUES (:bet_id, :winner_id, :notes)
    RETURNING id, bet_id, winner_id, notes, confirmed_at
""")

_COUNT_CONFIRMATIONS_SQL = text("SELECT COUNT(*) FROM bet_fulfillments WHERE bet_id = :bet_id")

_LIST_CONFIRMATIONS_SQL = text("""
    SELECT id, bet_id, winner_id, notes, confirmed_at
    FROM bet_fulfillments
    WHERE bet_id = :bet_id
    ORDER BY confirmed_at
""")


def _row_to_claim(row: object) -> LoserFulfillmentClaim:
    return LoserFulfillmentClaim(
        id=str(row.id),  # type: ignore[attr-defined]
        bet_id=str(row.bet_id),  # type: ignore[attr-defined]
        loser_id=str(row.loser_id),  # type: ignore[attr-defined]
        proof_url=row.proof_url,  # type: ignore[attr-defined]
        proof_description=row.proof_description,  # type: ignore[attr-defined]
        claimed_at=row.claimed_at,  # type: ignore[attr-defined]
    )


def _row_to_confirmation(row: object) -> BetFulfillment:
    return BetFulfillment(
        id=str(row.id),  # type: ignore[attr-defined]
        bet_id=str(row.bet_id),  # type: ignore[attr-defined]
        winner_id=str(row.winner_id),  # type: ignore[attr-defined]
        notes=row.notes,  # type: ignore[attr-defined]
        confirmed_at=row.confirmed_at,  # type: ignore[attr-defined]
    )


class FulfillmentRepository:
    async def upsert_loser_claim(
        self,
        db: AsyncSession,
        bet_id: str,
        loser_id: str,
        proof_url: str | None,
        proof_description: str | None,
    ) -> LoserFulfillmentClaim:
        result = await db.execute(
            _UPSERT_CLAIM_SQL,
            {
                "bet_id": bet_id,
                "loser_id": loser_id,
                "proof_url": proof_url,
                "proof_description": proof_description,
            },
        )
        return _row_to_claim(result.fetchone())

    async def list_loser_claims(
        self, db: AsyncSession, bet_id: str
    ) -> list[LoserFulfillmentClaim]:
        result = await db.execute(_LIST_CLAIMS_SQL, {"bet_id": bet_id})
        return [_row_to_claim(r) for r in result.fetchall()]

    async def confirmation_exists(self, db: AsyncSession, bet_id: str, winner_id: str) -> bool:
        result = await db.execute(
            _CONFIRMATION_EXISTS_SQL, {"bet_id": bet_id, "winner_id": winner_id}
        )
        return result.fetchone() is not None

    async def insert_confirmation(
        self, db: AsyncSession, bet_id: str, winner_id: str, notes: str | None
    ) -> BetFulfillment:
        result = await db.execute(
            _INSERT_CONFIRMATION_SQL, {"bet_id": bet_id, "winner_id": winner_id, "notes": notes}
        )
        return _row_to_confirmation(result.fetchone())

    async def count_confirmations(self, db: AsyncSession, bet_id: str) -> int:
        result = await db.execute(_COUNT_CONFIRMATIONS_SQL, {"bet_id": bet_id})
        return int(result.scalar_one())

    async def list_confirmations(self, db: AsyncSession, bet_id: str) -> list[BetFulfillment]:
        result = await db.execute(_LIST_CONFIRMATIONS_SQL, {"bet_id": bet_id})
        return [_row_to_confirmation(r) for r in result.fetchall()]
