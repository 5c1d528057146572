"""002: create users, user_settings and transactions

Revision ID: 002
Revises: 001
Create Date: 2026-09-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            username        VARCHAR(64)     NOT NULL,
            email           VARCHAR(255)    NOT NULL,
            display_name    VARCHAR(100),
            password_hash   VARCHAR(255)    NOT NULL,
            credit_balance  BIGINT          NOT NULL DEFAULT 0,
            total_wins      INTEGER         NOT NULL DEFAULT 0,
            total_losses    INTEGER         NOT NULL DEFAULT 0,
            current_streak  INTEGER         NOT NULL DEFAULT 0,
            longest_streak  INTEGER         NOT NULL DEFAULT 0,
            active_bets     INTEGER         NOT NULL DEFAULT 0,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            expo_push_token VARCHAR(255),
            deleted_at      TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username     UNIQUE (username),
            CONSTRAINT uq_users_email        UNIQUE (email),
            CONSTRAINT ck_users_username_len CHECK (LENGTH(username) >= 3),
            CONSTRAINT ck_users_balance      CHECK (credit_balance >= 0),
            CONSTRAINT ck_users_active_bets  CHECK (active_bets >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_users_email ON users (email);")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE users IS 'Accounts, credit balance (hundredths) and win/loss record';")

    op.execute("""
        CREATE TABLE user_settings (
            user_id                                 UUID        PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            push_notifications                      BOOLEAN     NOT NULL DEFAULT TRUE,
            bet_created_notifications               BOOLEAN     NOT NULL DEFAULT TRUE,
            bet_cancelled_notifications             BOOLEAN     NOT NULL DEFAULT TRUE,
            bet_result_notifications                BOOLEAN     NOT NULL DEFAULT TRUE,
            bet_deadline_notifications              BOOLEAN     NOT NULL DEFAULT TRUE,
            bet_resolution_reminder_notifications   BOOLEAN     NOT NULL DEFAULT TRUE,
            bet_fulfillment_notifications           BOOLEAN     NOT NULL DEFAULT TRUE,
            group_join_request_notifications        BOOLEAN     NOT NULL DEFAULT TRUE,
            group_invite_notifications              BOOLEAN     NOT NULL DEFAULT TRUE,
            group_member_joined_notifications       BOOLEAN     NOT NULL DEFAULT TRUE,
            group_member_left_notifications         BOOLEAN     NOT NULL DEFAULT TRUE,
            group_role_changed_notifications        BOOLEAN     NOT NULL DEFAULT TRUE,
            group_deleted_notifications             BOOLEAN     NOT NULL DEFAULT TRUE,
            system_announcement_notifications       BOOLEAN     NOT NULL DEFAULT TRUE,
            created_at                              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_user_settings_updated_at
            BEFORE UPDATE ON user_settings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE transactions (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         UUID            NOT NULL REFERENCES users(id),
            type            VARCHAR(10)     NOT NULL,
            amount          BIGINT          NOT NULL,
            reason          VARCHAR(255)    NOT NULL,
            correlation_id  VARCHAR(64),
            balance_before  BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_type   CHECK (type IN ('CREDIT', 'DEBIT')),
            CONSTRAINT ck_transactions_amount CHECK (amount > 0)
        );
    """)
    op.execute("CREATE INDEX idx_transactions_user ON transactions (user_id, id DESC);")
    op.execute("COMMENT ON TABLE transactions IS 'Append-only credit ledger';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS user_settings CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
