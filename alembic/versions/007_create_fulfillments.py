"""007: create social stake fulfillment tables

Revision ID: 007
Revises: 006
Create Date: 2026-09-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE loser_fulfillment_claims (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            bet_id              UUID            NOT NULL REFERENCES bets(id) ON DELETE CASCADE,
            loser_id            UUID            NOT NULL REFERENCES users(id),
            proof_url           VARCHAR(500),
            proof_description   VARCHAR(1000),
            claimed_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_loser_fulfillment_claims_loser UNIQUE (bet_id, loser_id)
        );
    """)

    op.execute("""
        CREATE TABLE bet_fulfillments (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            bet_id          UUID            NOT NULL REFERENCES bets(id) ON DELETE CASCADE,
            winner_id       UUID            NOT NULL REFERENCES users(id),
            notes           VARCHAR(1000),
            confirmed_at    TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bet_fulfillments_winner UNIQUE (bet_id, winner_id)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bet_fulfillments CASCADE;")
    op.execute("DROP TABLE IF EXISTS loser_fulfillment_claims CASCADE;")
