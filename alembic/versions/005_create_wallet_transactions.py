"""005: create wallet_transactions table

Revision ID: 005
Revises: 004
Create Date: 2026-09-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallet_transactions (
            id                  VARCHAR(32)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL,
            transaction_type    VARCHAR(20)     NOT NULL,
            amount              BIGINT          NOT NULL,
            balance_before      BIGINT          NOT NULL,
            balance_after       BIGINT          NOT NULL,
            reference_id        VARCHAR(64),
            reference_type      VARCHAR(30),
            status              VARCHAR(16)     NOT NULL DEFAULT 'completed',
            description         VARCHAR(500),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallet_tx_type
                CHECK (transaction_type IN ('referral', 'campaign_bonus', 'refund')),
            CONSTRAINT ck_wallet_tx_amount CHECK (amount > 0),
            CONSTRAINT ck_wallet_tx_status CHECK (status IN ('pending', 'completed'))
        );
    """)
    op.execute(
        "CREATE INDEX idx_wallet_tx_user ON wallet_transactions (user_id, transaction_type, id DESC);"
    )
    # One reversal per rejected payout
    op.execute("""
        CREATE UNIQUE INDEX uq_wallet_tx_payout_refund
            ON wallet_transactions (reference_id)
            WHERE transaction_type = 'refund' AND reference_type = 'payout';
    """)
    op.execute("""
        CREATE TRIGGER trg_wallet_tx_append_only
            BEFORE UPDATE OR DELETE ON wallet_transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE wallet_transactions IS 'Append-only wallet credits: bonuses and rejected-payout reversals';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallet_transactions CASCADE;")
