"""003: create availability_slots table

Revision ID: 003
Revises: 002
Create Date: 2026-09-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE availability_slots (
            id              VARCHAR(32)     PRIMARY KEY,
            companion_id    VARCHAR(64)     NOT NULL,
            date            DATE            NOT NULL,
            start_time      TIME            NOT NULL,
            end_time        TIME            NOT NULL,
            price_per_hour  BIGINT          NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'available',
            city            VARCHAR(64),
            area            VARCHAR(128),
            version         INTEGER         NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_slots_window CHECK (end_time > start_time),
            CONSTRAINT ck_slots_price CHECK (price_per_hour > 0),
            CONSTRAINT ck_slots_status CHECK (status IN ('available', 'booked'))
        );
    """)
    op.execute(
        "CREATE INDEX idx_slots_companion_date ON availability_slots (companion_id, date, start_time);"
    )
    op.execute(
        "CREATE INDEX idx_slots_search ON availability_slots (date, city, area) WHERE status = 'available';"
    )
    op.execute("""
        CREATE TRIGGER trg_slots_updated_at
            BEFORE UPDATE ON availability_slots
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE availability_slots IS 'Companion availability windows; overlap is checked under a per-day advisory lock';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS availability_slots CASCADE;")
