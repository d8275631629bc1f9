"""008: create notifications outbox

Revision ID: 008
Revises: 007
Create Date: 2026-09-14
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
            id              VARCHAR(32)     PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            kind            VARCHAR(32)     NOT NULL,
            payload         JSONB           NOT NULL DEFAULT '{}'::jsonb,
            delivered_at    TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute(
        "CREATE INDEX idx_notifications_undelivered ON notifications (created_at) "
        "WHERE delivered_at IS NULL;"
    )
    op.execute("CREATE INDEX idx_notifications_user ON notifications (user_id, created_at DESC);")
    op.execute("COMMENT ON TABLE notifications IS 'Outbox of notification intents for an external deliverer';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE;")
