"""003: create groups and group_memberships

Revision ID: 003
Revises: 002
Create Date: 2026-09-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE groups (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            name            VARCHAR(50)     NOT NULL,
            description     VARCHAR(500),
            privacy         VARCHAR(10)     NOT NULL DEFAULT 'PUBLIC',
            owner_id        UUID            NOT NULL REFERENCES users(id),
            member_count    INTEGER         NOT NULL DEFAULT 0,
            max_members     INTEGER         NOT NULL DEFAULT 50,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            deleted_at      TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_groups_privacy      CHECK (privacy IN ('PUBLIC', 'PRIVATE')),
            CONSTRAINT ck_groups_member_count CHECK (member_count >= 0 AND member_count <= max_members),
            CONSTRAINT ck_groups_max_members  CHECK (max_members BETWEEN 2 AND 500)
        );
    """)
    # Names are unique among live groups, case-insensitively
    op.execute("""
        CREATE UNIQUE INDEX uq_groups_name_live
            ON groups (LOWER(name)) WHERE deleted_at IS NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_groups_updated_at
            BEFORE UPDATE ON groups
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE group_memberships (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            group_id        UUID            NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
            user_id         UUID            NOT NULL REFERENCES users(id),
            role            VARCHAR(10)     NOT NULL DEFAULT 'MEMBER',
            status          VARCHAR(10)     NOT NULL DEFAULT 'PENDING',
            is_active       BOOLEAN         NOT NULL DEFAULT FALSE,
            invited_by      UUID            REFERENCES users(id),
            joined_at       TIMESTAMPTZ,
            left_at         TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_group_memberships_user UNIQUE (group_id, user_id),
            CONSTRAINT ck_group_memberships_role
                CHECK (role IN ('ADMIN', 'OFFICER', 'MEMBER')),
            CONSTRAINT ck_group_memberships_status
                CHECK (status IN ('PENDING', 'APPROVED', 'REJECTED', 'LEFT'))
        );
    """)
    op.execute("CREATE INDEX idx_group_memberships_user ON group_memberships (user_id, status);")
    op.execute("CREATE INDEX idx_group_memberships_group ON group_memberships (group_id, status);")
    op.execute("""
        CREATE TRIGGER trg_group_memberships_updated_at
            BEFORE UPDATE ON group_memberships
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS group_memberships CASCADE;")
    op.execute("DROP TABLE IF EXISTS groups CASCADE;")
