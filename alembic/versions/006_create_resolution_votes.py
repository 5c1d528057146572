"""006: create resolution vote tables

Revision ID: 006
Revises: 005
Create Date: 2026-09-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # voted_outcome is NULL for winner-selection ballots on prediction bets
    op.execute("""
        CREATE TABLE bet_resolution_votes (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            bet_id          UUID            NOT NULL REFERENCES bets(id) ON DELETE CASCADE,
            voter_id        UUID            NOT NULL REFERENCES users(id),
            voted_outcome   VARCHAR(10),
            reasoning       VARCHAR(1000),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bet_resolution_votes_voter UNIQUE (bet_id, voter_id),
            CONSTRAINT ck_bet_resolution_votes_outcome
                CHECK (voted_outcome IS NULL
                       OR voted_outcome IN ('OPTION_1', 'OPTION_2', 'OPTION_3', 'OPTION_4', 'DRAW'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_bet_resolution_votes_updated_at
            BEFORE UPDATE ON bet_resolution_votes
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE bet_resolution_vote_winners (
            vote_id     UUID    NOT NULL REFERENCES bet_resolution_votes(id) ON DELETE CASCADE,
            user_id     UUID    NOT NULL REFERENCES users(id),
            PRIMARY KEY (vote_id, user_id)
        );
    """)

    op.execute("""
        CREATE TABLE prediction_resolution_votes (
            id                  UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            bet_id              UUID        NOT NULL REFERENCES bets(id) ON DELETE CASCADE,
            participation_id    UUID        NOT NULL REFERENCES bet_participations(id) ON DELETE CASCADE,
            voter_id            UUID        NOT NULL REFERENCES users(id),
            is_correct          BOOLEAN     NOT NULL,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_prediction_resolution_votes_voter UNIQUE (participation_id, voter_id)
        );
    """)
    op.execute("CREATE INDEX idx_prediction_resolution_votes_bet ON prediction_resolution_votes (bet_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS prediction_resolution_votes CASCADE;")
    op.execute("DROP TABLE IF EXISTS bet_resolution_vote_winners CASCADE;")
    op.execute("DROP TABLE IF EXISTS bet_resolution_votes CASCADE;")
