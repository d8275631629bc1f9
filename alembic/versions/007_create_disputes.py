"""007: create disputes table

Revision ID: 007
Revises: 006
Create Date: 2026-09-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE disputes (
            id                      VARCHAR(32)     PRIMARY KEY,
            booking_id              VARCHAR(32)     NOT NULL REFERENCES bookings (id),
            raised_by               VARCHAR(64)     NOT NULL,
            against_user_id         VARCHAR(64)     NOT NULL,
            reason                  TEXT            NOT NULL,
            status                  VARCHAR(16)     NOT NULL DEFAULT 'open',
            resolution              TEXT,
            refund_amount           BIGINT          NOT NULL DEFAULT 0,
            admin_notes             TEXT,
            booking_status_before   VARCHAR(20)     NOT NULL,
            escrow_status_before    VARCHAR(16)     NOT NULL,
            resolved_by             VARCHAR(64),
            resolved_at             TIMESTAMPTZ,
            version                 INTEGER         NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_disputes_status
                CHECK (status IN ('open', 'under_review', 'resolved', 'closed')),
            CONSTRAINT ck_disputes_refund CHECK (refund_amount >= 0)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_disputes_active_booking
            ON disputes (booking_id)
            WHERE status IN ('open', 'under_review');
    """)
    op.execute("CREATE INDEX idx_disputes_raised_by ON disputes (raised_by, id DESC);")
    op.execute("CREATE INDEX idx_disputes_against ON disputes (against_user_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_disputes_updated_at
            BEFORE UPDATE ON disputes
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE disputes IS 'Booking disputes; at most one open or under_review per booking';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS disputes CASCADE;")
