"""004: create bets

Revision ID: 004
Revises: 003
Create Date: 2026-09-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bets (
            id                          UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            group_id                    UUID            NOT NULL REFERENCES groups(id),
            creator_id                  UUID            NOT NULL REFERENCES users(id),
            title                       VARCHAR(200)    NOT NULL,
            description                 VARCHAR(1000),
            bet_type                    VARCHAR(20)     NOT NULL,
            status                      VARCHAR(10)     NOT NULL DEFAULT 'OPEN',
            stake_type                  VARCHAR(10)     NOT NULL DEFAULT 'CREDIT',
            resolution_method           VARCHAR(20)     NOT NULL DEFAULT 'SELF',
            option_1                    VARCHAR(200),
            option_2                    VARCHAR(200),
            option_3                    VARCHAR(200),
            option_4                    VARCHAR(200),
            fixed_stake_amount          BIGINT,
            minimum_bet                 BIGINT          NOT NULL DEFAULT 0,
            maximum_bet                 BIGINT,
            social_stake_description    VARCHAR(500),
            betting_deadline            TIMESTAMPTZ     NOT NULL,
            resolve_date                TIMESTAMPTZ,
            minimum_votes_required      INTEGER         NOT NULL DEFAULT 1,
            allow_creator_vote          BOOLEAN         NOT NULL DEFAULT TRUE,
            outcome                     VARCHAR(10),
            total_pool                  BIGINT          NOT NULL DEFAULT 0,
            total_participants          INTEGER         NOT NULL DEFAULT 0,
            pool_option_1               BIGINT          NOT NULL DEFAULT 0,
            pool_option_2               BIGINT          NOT NULL DEFAULT 0,
            pool_option_3               BIGINT          NOT NULL DEFAULT 0,
            pool_option_4               BIGINT          NOT NULL DEFAULT 0,
            participants_option_1       INTEGER         NOT NULL DEFAULT 0,
            participants_option_2       INTEGER         NOT NULL DEFAULT 0,
            participants_option_3       INTEGER         NOT NULL DEFAULT 0,
            participants_option_4       INTEGER         NOT NULL DEFAULT 0,
            stake_fulfillment_required  BOOLEAN         NOT NULL DEFAULT FALSE,
            fulfillment_status          VARCHAR(20),
            all_winners_confirmed_at    TIMESTAMPTZ,
            cancellation_reason         VARCHAR(500),
            resolution_reminder_24h_sent_at TIMESTAMPTZ,
            resolution_reminder_1h_sent_at  TIMESTAMPTZ,
            betting_reminder_24h_sent_at    TIMESTAMPTZ,
            betting_reminder_1h_sent_at     TIMESTAMPTZ,
            resolved_at                 TIMESTAMPTZ,
            resolved_by                 UUID            REFERENCES users(id),
            deleted_at                  TIMESTAMPTZ,
            created_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_bets_bet_type
                CHECK (bet_type IN ('BINARY', 'MULTIPLE_CHOICE', 'PREDICTION')),
            CONSTRAINT ck_bets_status
                CHECK (status IN ('OPEN', 'CLOSED', 'RESOLVED', 'CANCELLED')),
            CONSTRAINT ck_bets_stake_type
                CHECK (stake_type IN ('CREDIT', 'SOCIAL')),
            CONSTRAINT ck_bets_resolution_method
                CHECK (resolution_method IN ('SELF', 'ASSIGNED_RESOLVERS', 'PARTICIPANT_VOTE')),
            CONSTRAINT ck_bets_outcome
                CHECK (outcome IS NULL OR outcome IN ('OPTION_1', 'OPTION_2', 'OPTION_3', 'OPTION_4', 'DRAW')),
            CONSTRAINT ck_bets_fulfillment_status
                CHECK (fulfillment_status IS NULL
                       OR fulfillment_status IN ('PENDING', 'PARTIALLY_FULFILLED', 'FULFILLED')),
            CONSTRAINT ck_bets_pools
                CHECK (total_pool >= 0 AND pool_option_1 >= 0 AND pool_option_2 >= 0
                       AND pool_option_3 >= 0 AND pool_option_4 >= 0),
            CONSTRAINT ck_bets_bet_limits
                CHECK (minimum_bet >= 0 AND (maximum_bet IS NULL OR maximum_bet >= minimum_bet))
        );
    """)
    op.execute("CREATE INDEX idx_bets_group_status ON bets (group_id, status) WHERE deleted_at IS NULL;")
    op.execute("CREATE INDEX idx_bets_creator ON bets (creator_id, created_at DESC);")
    op.execute("CREATE INDEX idx_bets_open_deadline ON bets (betting_deadline) WHERE status = 'OPEN';")
    op.execute("""
        CREATE INDEX idx_bets_resolve_date ON bets (resolve_date)
            WHERE status IN ('OPEN', 'CLOSED');
    """)
    op.execute("""
        CREATE TRIGGER trg_bets_updated_at
            BEFORE UPDATE ON bets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE bets IS 'Group bets with per-option pools (hundredths of a credit)';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bets CASCADE;")
