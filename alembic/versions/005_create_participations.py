"""005: create insurance_items, bet_participations and bet_resolvers

Revision ID: 005
Revises: 004
Create Date: 2026-09-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE insurance_items (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id         UUID            NOT NULL REFERENCES users(id),
            tier            VARCHAR(10)     NOT NULL,
            uses_remaining  INTEGER         NOT NULL DEFAULT 1,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_insurance_items_tier CHECK (tier IN ('BASIC', 'PREMIUM', 'ELITE')),
            CONSTRAINT ck_insurance_items_uses CHECK (uses_remaining >= 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_insurance_items_user ON insurance_items (user_id)
            WHERE is_active = TRUE;
    """)

    op.execute("""
        CREATE TABLE bet_participations (
            id                          UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            bet_id                      UUID        NOT NULL REFERENCES bets(id) ON DELETE CASCADE,
            user_id                     UUID        NOT NULL REFERENCES users(id),
            chosen_option               SMALLINT,
            predicted_value             VARCHAR(500),
            amount                      BIGINT      NOT NULL DEFAULT 0,
            status                      VARCHAR(10) NOT NULL DEFAULT 'ACTIVE',
            potential_winnings          BIGINT      NOT NULL DEFAULT 0,
            actual_winnings             BIGINT      NOT NULL DEFAULT 0,
            insurance_item_id           UUID        REFERENCES insurance_items(id),
            insurance_refund_percentage SMALLINT,
            insurance_refund_amount     BIGINT      NOT NULL DEFAULT 0,
            settled_at                  TIMESTAMPTZ,
            created_at                  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bet_participations_user UNIQUE (bet_id, user_id),
            CONSTRAINT ck_bet_participations_status
                CHECK (status IN ('ACTIVE', 'WON', 'LOST', 'DRAW', 'CREATOR', 'CANCELLED', 'REFUNDED')),
            CONSTRAINT ck_bet_participations_option
                CHECK (chosen_option IS NULL OR chosen_option BETWEEN 1 AND 4),
            CONSTRAINT ck_bet_participations_amount CHECK (amount >= 0),
            CONSTRAINT ck_bet_participations_refund_pct
                CHECK (insurance_refund_percentage IS NULL
                       OR insurance_refund_percentage BETWEEN 0 AND 100)
        );
    """)
    op.execute("CREATE INDEX idx_bet_participations_user ON bet_participations (user_id, status);")
    op.execute("""
        CREATE TRIGGER trg_bet_participations_updated_at
            BEFORE UPDATE ON bet_participations
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE bet_resolvers (
            id              UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            bet_id          UUID        NOT NULL REFERENCES bets(id) ON DELETE CASCADE,
            user_id         UUID        NOT NULL REFERENCES users(id),
            assigned_by     UUID        REFERENCES users(id),
            can_vote_only   BOOLEAN     NOT NULL DEFAULT FALSE,
            is_active       BOOLEAN     NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bet_resolvers_user UNIQUE (bet_id, user_id)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bet_resolvers CASCADE;")
    op.execute("DROP TABLE IF EXISTS bet_participations CASCADE;")
    op.execute("DROP TABLE IF EXISTS insurance_items CASCADE;")
