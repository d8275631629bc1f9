"""004: create bookings table

Revision ID: 004
Revises: 003
Create Date: 2026-09-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bookings (
            id                      VARCHAR(32)     PRIMARY KEY,
            availability_id         VARCHAR(32)     NOT NULL,
            companion_id            VARCHAR(64)     NOT NULL,
            seeker_id               VARCHAR(64)     NOT NULL,
            date                    DATE            NOT NULL,
            start_time              TIME            NOT NULL,
            end_time                TIME            NOT NULL,
            duration_minutes        INTEGER         NOT NULL,
            base_price              BIGINT          NOT NULL,
            platform_fee            BIGINT          NOT NULL,
            total_amount            BIGINT          NOT NULL,
            companion_payout        BIGINT          NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'pending_payment',
            escrow_status           VARCHAR(16)     NOT NULL DEFAULT 'pending',
            payment_order_id        VARCHAR(64),
            payment_reference       VARCHAR(128),
            request_expires_at      TIMESTAMPTZ,
            refund_amount           BIGINT          NOT NULL DEFAULT 0,
            cancelled_by            VARCHAR(64),
            cancelled_from_status   VARCHAR(20),
            cancelled_at            TIMESTAMPTZ,
            version                 INTEGER         NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bookings_payment_order UNIQUE (payment_order_id),
            CONSTRAINT ck_bookings_window CHECK (end_time > start_time),
            CONSTRAINT ck_bookings_duration CHECK (duration_minutes > 0),
            CONSTRAINT ck_bookings_total CHECK (total_amount = base_price + platform_fee),
            CONSTRAINT ck_bookings_payout CHECK (companion_payout = base_price),
            CONSTRAINT ck_bookings_refund CHECK (refund_amount BETWEEN 0 AND total_amount),
            CONSTRAINT ck_bookings_status CHECK (status IN (
                'pending_payment', 'pending', 'accepted', 'completed',
                'cancelled', 'disputed', 'expired', 'failed')),
            CONSTRAINT ck_bookings_escrow CHECK (escrow_status IN (
                'pending', 'held', 'disputed', 'released', 'refunded'))
        );
    """)
    op.execute("CREATE INDEX idx_bookings_slot ON bookings (availability_id);")
    op.execute("CREATE INDEX idx_bookings_seeker ON bookings (seeker_id, id DESC);")
    op.execute("CREATE INDEX idx_bookings_companion ON bookings (companion_id, id DESC);")
    op.execute(
        "CREATE INDEX idx_bookings_unpaid ON bookings (request_expires_at) "
        "WHERE status = 'pending_payment';"
    )
    op.execute(
        "CREATE INDEX idx_bookings_cancelled_by ON bookings (cancelled_by, cancelled_at) "
        "WHERE status = 'cancelled';"
    )
    op.execute("""
        CREATE TRIGGER trg_bookings_updated_at
            BEFORE UPDATE ON bookings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE bookings IS 'Booking lifecycle with embedded escrow state; every write is a versioned compare-and-set';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bookings CASCADE;")
