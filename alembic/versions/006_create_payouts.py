"""006: create payouts table

Revision ID: 006
Revises: 005
Create Date: 2026-09-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payouts (
            id                  VARCHAR(32)     PRIMARY KEY,
            companion_id        VARCHAR(64)     NOT NULL,
            requested_amount    BIGINT          NOT NULL,
            platform_fee        BIGINT          NOT NULL,
            amount              BIGINT          NOT NULL,
            payment_method      VARCHAR(20)     NOT NULL,
            payment_details     JSONB           NOT NULL,
            status              VARCHAR(16)     NOT NULL DEFAULT 'pending',
            idempotency_key     VARCHAR(200)    NOT NULL,
            rejection_reason    VARCHAR(500),
            processed_by        VARCHAR(64),
            processed_at        TIMESTAMPTZ,
            version             INTEGER         NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payouts_idempotency_key UNIQUE (idempotency_key),
            CONSTRAINT ck_payouts_amounts
                CHECK (requested_amount > 0 AND amount = requested_amount - platform_fee),
            CONSTRAINT ck_payouts_method CHECK (payment_method IN ('upi', 'bank_transfer')),
            CONSTRAINT ck_payouts_status CHECK (status IN (
                'pending', 'approved', 'processing', 'completed', 'rejected')),
            CONSTRAINT ck_payouts_rejection
                CHECK (status <> 'rejected' OR rejection_reason IS NOT NULL)
        );
    """)
    op.execute("CREATE INDEX idx_payouts_companion ON payouts (companion_id, id DESC);")
    op.execute("CREATE INDEX idx_payouts_status ON payouts (status, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_payouts_updated_at
            BEFORE UPDATE ON payouts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE payouts IS 'Companion withdrawal requests; a non-rejected row debits the wallet';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payouts CASCADE;")
