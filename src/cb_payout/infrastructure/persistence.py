"""PayoutRepository — raw SQL persistence for payouts.

Insert uses ON CONFLICT (idempotency_key) DO NOTHING: None back means the
request is a replay and the caller should load the existing row.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.enums import PaymentMethod, PayoutStatus
from src.cb_payout.domain.models import Payout

_PAYOUT_COLUMNS = """
    id, companion_id, requested_amount, platform_fee, amount, payment_method,
    payment_details, status, idempotency_key, rejection_reason, processed_by,
    processed_at, version, created_at, updated_at
"""

_INSERT_PAYOUT_SQL = text(f"""
    INSERT INTO payouts (
        id, companion_id, requested_amount, platform_fee, amount, payment_method,
        payment_details, status, idempotency_key)
    VALUES (
        :id, :companion_id, :requested_amount, :platform_fee, :amount, :payment_method,
        CAST(:payment_details AS JSONB), :status, :idempotency_key)
    ON CONFLICT (idempotency_key) DO NOTHING
    RETURNING {_PAYOUT_COLUMNS}
""")

_GET_PAYOUT_SQL = text(f"SELECT {_PAYOUT_COLUMNS} FROM payouts WHERE id = :payout_id")

_GET_BY_KEY_SQL = text(
    f"SELECT {_PAYOUT_COLUMNS} FROM payouts WHERE idempotency_key = :idempotency_key"
)

_CAS_STATUS_SQL = text(f"""
    UPDATE payouts
    SET status = :new_status,
        rejection_reason = COALESCE(CAST(:rejection_reason AS TEXT), rejection_reason),
        processed_by = :processed_by,
        processed_at = NOW(),
        version = version + 1,
        updated_at = NOW()
    WHERE id = :payout_id AND version = :expected_version
    RETURNING {_PAYOUT_COLUMNS}
""")

_LIST_PAYOUTS_SQL = text(f"""
    SELECT {_PAYOUT_COLUMNS}
    FROM payouts
    WHERE (CAST(:companion_id AS TEXT) IS NULL OR companion_id = CAST(:companion_id AS TEXT))
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < CAST(:cursor_id AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_payout(row: Any) -> Payout:
    details = row.payment_details
    if isinstance(details, str):
        details = json.loads(details)
    return Payout(
        id=row.id,
        companion_id=row.companion_id,
        requested_amount=row.requested_amount,
        platform_fee=row.platform_fee,
        amount=row.amount,
        payment_method=PaymentMethod(row.payment_method),
        payment_details=details or {},
        status=PayoutStatus(row.status),
        idempotency_key=row.idempotency_key,
        rejection_reason=row.rejection_reason,
        processed_by=row.processed_by,
        processed_at=row.processed_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class PayoutRepository:
    async def insert_if_absent(self, db: AsyncSession, payout: Payout) -> Payout | None:
        result = await db.execute(
            _INSERT_PAYOUT_SQL,
            {
                "id": payout.id,
                "companion_id": payout.companion_id,
                "requested_amount": payout.requested_amount,
                "platform_fee": payout.platform_fee,
                "amount": payout.amount,
                "payment_method": payout.payment_method.value,
                "payment_details": json.dumps(payout.payment_details),
                "status": payout.status.value,
                "idempotency_key": payout.idempotency_key,
            },
        )
        row = result.fetchone()
        return _row_to_payout(row) if row else None

    async def get_by_id(self, db: AsyncSession, payout_id: str) -> Payout | None:
        row = (await db.execute(_GET_PAYOUT_SQL, {"payout_id": payout_id})).fetchone()
        return _row_to_payout(row) if row else None

    async def get_by_idempotency_key(self, db: AsyncSession, key: str) -> Payout | None:
        row = (await db.execute(_GET_BY_KEY_SQL, {"idempotency_key": key})).fetchone()
        return _row_to_payout(row) if row else None

    async def compare_and_set_status(
        self,
        db: AsyncSession,
        payout_id: str,
        expected_version: int,
        new_status: PayoutStatus,
        processed_by: str,
        rejection_reason: str | None = None,
    ) -> Payout | None:
        result = await db.execute(
            _CAS_STATUS_SQL,
            {
                "payout_id": payout_id,
                "expected_version": expected_version,
                "new_status": new_status.value,
                "processed_by": processed_by,
                "rejection_reason": rejection_reason,
            },
        )
        row = result.fetchone()
        return _row_to_payout(row) if row else None

    async def list_payouts(
        self,
        db: AsyncSession,
        companion_id: str | None,
        status: PayoutStatus | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Payout]:
        result = await db.execute(
            _LIST_PAYOUTS_SQL,
            {
                "companion_id": companion_id,
                "status": status.value if status else None,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_payout(row) for row in result.fetchall()]
