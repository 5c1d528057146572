"""VoteRepository — outcome votes, winner selections and prediction correctness votes."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.domain.models import BetResolutionVote

_UPSERT_VOTE_SQL = text("""
    INSERT INTO bet_resolution_votes (bet_id, voter_id, voted_outcome, reasoning)
    VALUES (:bet_id, :voter_id, :voted_outcome, :reasoning)
    ON CONFLICT (bet_id, voter_id) DO UPDATE
        SET voted_outcome = EXCLUDED.voted_outcome,
            reasoning = EXCLUDED.reasoning,
            updated_at = NOW()
    RETURNING id, bet_id, voter_id, voted_outcome, reasoning, created_at
""")

_DELETE_WINNERS_SQL = text("DELETE FROM bet_resolution_vote_winners WHERE vote_id = :vote_id")

_INSERT_WINNER_SQL = text("""
    INSERT INTO bet_resolution_vote_winners (vote_id, user_id)
    VALUES (:vote_id, :user_id)
    ON CONFLICT DO NOTHING
""")

_COUNT_BY_OUTCOME_SQL = text("""
    SELECT voted_outcome, COUNT(*) AS votes
    FROM bet_resolution_votes
    WHERE bet_id = :bet_id AND voted_outcome IS NOT NULL
    GROUP BY voted_outcome
""")

_LIST_VOTES_SQL = text("""
    SELECT v.id, v.bet_id, v.voter_id, v.voted_outcome, v.reasoning, v.created_at,
           COALESCE(
               array_agg(w.user_id::text) FILTER (WHERE w.user_id IS NOT NULL),
               '{}'
           ) AS winner_user_ids
    FROM bet_resolution_votes v
    LEFT JOIN bet_resolution_vote_winners w ON w.vote_id = v.id
    WHERE v.bet_id = :bet_id
    GROUP BY v.id
    ORDER BY v.created_at
""")

_UPSERT_PARTICIPATION_VOTE_SQL = text("""
    INSERT INTO prediction_resolution_votes (bet_id, participation_id, voter_id, is_correct)
    VALUES (:bet_id, :participation_id, :voter_id, :is_correct)
    ON CONFLICT (participation_id, voter_id) DO UPDATE
        SET is_correct = EXCLUDED.is_correct
""")

_PARTICIPATION_DISTRIBUTION_SQL = text("""
    SELECT participation_id,
           COUNT(*) FILTER (WHERE is_correct) AS correct,
           COUNT(*) FILTER (WHERE NOT is_correct) AS incorrect
    FROM prediction_resolution_votes
    WHERE bet_id = :bet_id
    GROUP BY participation_id
""")

_COUNT_PARTICIPATION_VOTES_SQL = text("""
    SELECT COUNT(*) FROM prediction_resolution_votes WHERE bet_id = :bet_id
""")

_DELETE_OUTCOME_VOTES_BY_VOTER_SQL = text("""
    DELETE FROM bet_resolution_votes WHERE bet_id = :bet_id AND voter_id = :voter_id
""")

# Votes cast by the voter, plus votes cast on the voter's own participation
_DELETE_PARTICIPATION_VOTES_BY_VOTER_SQL = text("""
    DELETE FROM prediction_resolution_votes
    WHERE bet_id = :bet_id
      AND (
          voter_id = :voter_id
          OR participation_id IN (
              SELECT id FROM bet_participations
              WHERE bet_id = :bet_id AND user_id = :voter_id
          )
      )
""")


def _row_to_vote(row: object, winners: list[str] | None = None) -> BetResolutionVote:
    return BetResolutionVote(
        id=str(row.id),  # type: ignore[attr-defined]
        bet_id=str(row.bet_id),  # type: ignore[attr-defined]
        voter_id=str(row.voter_id),  # type: ignore[attr-defined]
        voted_outcome=row.voted_outcome,  # type: ignore[attr-defined]
        winner_user_ids=winners or [],
        reasoning=row.reasoning,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class VoteRepository:
    async def upsert_outcome_vote(
        self,
        db: AsyncSession,
        bet_id: str,
        voter_id: str,
        outcome: str | None,
        reasoning: str | None,
    ) -> BetResolutionVote:
        result = await db.execute(
            _UPSERT_VOTE_SQL,
            {"bet_id": bet_id, "voter_id": voter_id, "voted_outcome": outcome, "reasoning": reasoning},
        )
        return _row_to_vote(result.fetchone())

    async def replace_vote_winners(
        self, db: AsyncSession, vote_id: str, winner_user_ids: list[str]
    ) -> None:
        await db.execute(_DELETE_WINNERS_SQL, {"vote_id": vote_id})
        for user_id in winner_user_ids:
            await db.execute(_INSERT_WINNER_SQL, {"vote_id": vote_id, "user_id": user_id})

    async def count_votes_by_outcome(self, db: AsyncSession, bet_id: str) -> dict[str, int]:
        result = await db.execute(_COUNT_BY_OUTCOME_SQL, {"bet_id": bet_id})
        return {row.voted_outcome: int(row.votes) for row in result.fetchall()}

    async def list_votes(self, db: AsyncSession, bet_id: str) -> list[BetResolutionVote]:
        result = await db.execute(_LIST_VOTES_SQL, {"bet_id": bet_id})
        return [_row_to_vote(r, list(r.winner_user_ids)) for r in result.fetchall()]

    async def upsert_participation_vote(
        self,
        db: AsyncSession,
        bet_id: str,
        participation_id: str,
        voter_id: str,
        is_correct: bool,
    ) -> None:
        await db.execute(
            _UPSERT_PARTICIPATION_VOTE_SQL,
            {
                "bet_id": bet_id,
                "participation_id": participation_id,
                "voter_id": voter_id,
                "is_correct": is_correct,
            },
        )

    async def participation_vote_distribution(
        self, db: AsyncSession, bet_id: str
    ) -> dict[str, tuple[int, int]]:
        """participation_id -> (correct votes, incorrect votes)."""
        result = await db.execute(_PARTICIPATION_DISTRIBUTION_SQL, {"bet_id": bet_id})
        return {
            str(row.participation_id): (int(row.correct), int(row.incorrect))
            for row in result.fetchall()
        }

    async def count_participation_votes(self, db: AsyncSession, bet_id: str) -> int:
        result = await db.execute(_COUNT_PARTICIPATION_VOTES_SQL, {"bet_id": bet_id})
        return int(result.scalar_one())

    async def delete_votes_by_voter(self, db: AsyncSession, bet_id: str, voter_id: str) -> int:
        """Drop every vote tied to a voter who lost their resolver seat."""
        outcome = await db.execute(
            _DELETE_OUTCOME_VOTES_BY_VOTER_SQL, {"bet_id": bet_id, "voter_id": voter_id}
        )
        correctness = await db.execute(
            _DELETE_PARTICIPATION_VOTES_BY_VOTER_SQL, {"bet_id": bet_id, "voter_id": voter_id}
        )
        return (outcome.rowcount or 0) + (correctness.rowcount or 0)
