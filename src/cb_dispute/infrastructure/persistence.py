"""DisputeRepository — raw SQL persistence for disputes.

At most one active (open / under_review) dispute per booking is enforced by
the partial unique index uq_disputes_active_booking; the insert turns a
collision into "0 rows" instead of an exception.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.enums import BookingStatus, DisputeStatus, EscrowStatus
from src.cb_dispute.domain.models import Dispute

_DISPUTE_COLUMNS = """
    id, booking_id, raised_by, against_user_id, reason, status, resolution,
    refund_amount, admin_notes, booking_status_before, escrow_status_before,
    resolved_by, resolved_at, version, created_at, updated_at
"""

_INSERT_DISPUTE_SQL = text(f"""
    INSERT INTO disputes (
        id, booking_id, raised_by, against_user_id, reason, status,
        booking_status_before, escrow_status_before)
    VALUES (
        :id, :booking_id, :raised_by, :against_user_id, :reason, :status,
        :booking_status_before, :escrow_status_before)
    ON CONFLICT DO NOTHING
    RETURNING {_DISPUTE_COLUMNS}
""")

_GET_DISPUTE_SQL = text(f"SELECT {_DISPUTE_COLUMNS} FROM disputes WHERE id = :dispute_id")

_LIST_FOR_BOOKING_SQL = text(f"""
    SELECT {_DISPUTE_COLUMNS}
    FROM disputes
    WHERE booking_id = :booking_id
    ORDER BY id
""")

_CAS_DISPUTE_SQL = text(f"""
    UPDATE disputes
    SET status = :new_status,
        resolution = COALESCE(CAST(:resolution AS TEXT), resolution),
        refund_amount = COALESCE(CAST(:refund_amount AS BIGINT), refund_amount),
        admin_notes = COALESCE(CAST(:admin_notes AS TEXT), admin_notes),
        resolved_by = COALESCE(CAST(:resolved_by AS TEXT), resolved_by),
        resolved_at = CASE WHEN CAST(:new_status AS TEXT) IN ('resolved', 'closed') THEN NOW()
                           ELSE resolved_at END,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :dispute_id AND version = :expected_version
    RETURNING {_DISPUTE_COLUMNS}
""")

_LIST_DISPUTES_SQL = text(f"""
    SELECT {_DISPUTE_COLUMNS}
    FROM disputes
    WHERE (CAST(:user_id AS TEXT) IS NULL
           OR raised_by = CAST(:user_id AS TEXT)
           OR against_user_id = CAST(:user_id AS TEXT))
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < CAST(:cursor_id AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_dispute(row: Any) -> Dispute:
    return Dispute(
        id=row.id,
        booking_id=row.booking_id,
        raised_by=row.raised_by,
        against_user_id=row.against_user_id,
        reason=row.reason,
        booking_status_before=BookingStatus(row.booking_status_before),
        escrow_status_before=EscrowStatus(row.escrow_status_before),
        status=DisputeStatus(row.status),
        resolution=row.resolution,
        refund_amount=row.refund_amount,
        admin_notes=row.admin_notes,
        resolved_by=row.resolved_by,
        resolved_at=row.resolved_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class DisputeRepository:
    async def insert_if_no_active(self, db: AsyncSession, dispute: Dispute) -> Dispute | None:
        result = await db.execute(
            _INSERT_DISPUTE_SQL,
            {
                "id": dispute.id,
                "booking_id": dispute.booking_id,
                "raised_by": dispute.raised_by,
                "against_user_id": dispute.against_user_id,
                "reason": dispute.reason,
                "status": dispute.status.value,
                "booking_status_before": dispute.booking_status_before.value,
                "escrow_status_before": dispute.escrow_status_before.value,
            },
        )
        row = result.fetchone()
        return _row_to_dispute(row) if row else None

    async def get_by_id(self, db: AsyncSession, dispute_id: str) -> Dispute | None:
        row = (await db.execute(_GET_DISPUTE_SQL, {"dispute_id": dispute_id})).fetchone()
        return _row_to_dispute(row) if row else None

    async def list_for_booking(self, db: AsyncSession, booking_id: str) -> list[Dispute]:
        result = await db.execute(_LIST_FOR_BOOKING_SQL, {"booking_id": booking_id})
        return [_row_to_dispute(row) for row in result.fetchall()]

    async def compare_and_set(
        self,
        db: AsyncSession,
        dispute_id: str,
        expected_version: int,
        new_status: DisputeStatus,
        *,
        resolution: str | None = None,
        refund_amount: int | None = None,
        admin_notes: str | None = None,
        resolved_by: str | None = None,
    ) -> Dispute | None:
        result = await db.execute(
            _CAS_DISPUTE_SQL,
            {
                "dispute_id": dispute_id,
                "expected_version": expected_version,
                "new_status": new_status.value,
                "resolution": resolution,
                "refund_amount": refund_amount,
                "admin_notes": admin_notes,
                "resolved_by": resolved_by,
            },
        )
        row = result.fetchone()
        return _row_to_dispute(row) if row else None

    async def list_disputes(
        self,
        db: AsyncSession,
        user_id: str | None,
        status: DisputeStatus | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Dispute]:
        result = await db.execute(
            _LIST_DISPUTES_SQL,
            {
                "user_id": user_id,
                "status": status.value if status else None,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_dispute(row) for row in result.fetchall()]
