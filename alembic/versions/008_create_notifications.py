"""008: create notifications

Revision ID: 008
Revises: 007
Create Date: 2026-09-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE notifications (
            id                  BIGSERIAL       PRIMARY KEY,
            user_id             UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title               VARCHAR(200)    NOT NULL,
            message             VARCHAR(1000)   NOT NULL,
            type                VARCHAR(40)     NOT NULL,
            priority            VARCHAR(10)     NOT NULL DEFAULT 'NORMAL',
            action_url          VARCHAR(255),
            related_entity_id   VARCHAR(64),
            related_entity_type VARCHAR(40),
            is_read             BOOLEAN         NOT NULL DEFAULT FALSE,
            read_at             TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_notifications_priority
                CHECK (priority IN ('LOW', 'NORMAL', 'HIGH', 'URGENT')),
            CONSTRAINT ck_notifications_type CHECK (type IN (
                'BET_CREATED', 'BET_CANCELLED', 'BET_RESULT', 'BET_DEADLINE',
                'BET_RESOLUTION_REMINDER', 'BET_FULFILLMENT_SUBMITTED',
                'GROUP_JOIN_REQUEST', 'GROUP_INVITE', 'GROUP_JOINED', 'GROUP_LEFT',
                'GROUP_ROLE_CHANGED', 'GROUP_DELETED', 'SYSTEM_ANNOUNCEMENT'
            ))
        );
    """)
    op.execute("CREATE INDEX idx_notifications_user ON notifications (user_id, id DESC);")
    op.execute("""
        CREATE INDEX idx_notifications_user_unread ON notifications (user_id)
            WHERE is_read = FALSE;
    """)
    op.execute("""
        CREATE INDEX idx_notifications_related ON notifications (related_entity_type, related_entity_id);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE;")
