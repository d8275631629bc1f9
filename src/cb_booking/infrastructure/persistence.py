"""BookingRepository — raw SQL persistence for bookings.

Every state change is a compare-and-set on `version`: 0 rows back means the
booking moved under us and the caller must reload and re-plan.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_booking.domain.models import Booking
from src.cb_common.enums import BookingStatus, EscrowStatus

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_BOOKING_COLUMNS = """
    id, availability_id, companion_id, seeker_id, date, start_time, end_time,
    duration_minutes, base_price, platform_fee, total_amount, companion_payout,
    status, escrow_status, payment_order_id, payment_reference, request_expires_at,
    refund_amount, cancelled_by, cancelled_from_status, cancelled_at, version,
    created_at, updated_at
"""

_INSERT_BOOKING_SQL = text(f"""
    INSERT INTO bookings (
        id, availability_id, companion_id, seeker_id, date, start_time, end_time,
        duration_minutes, base_price, platform_fee, total_amount, companion_payout,
        status, escrow_status, request_expires_at)
    VALUES (
        :id, :availability_id, :companion_id, :seeker_id, :date, :start_time, :end_time,
        :duration_minutes, :base_price, :platform_fee, :total_amount, :companion_payout,
        :status, :escrow_status, :request_expires_at)
    RETURNING {_BOOKING_COLUMNS}
""")

_GET_BOOKING_SQL = text(f"""
    SELECT {_BOOKING_COLUMNS}
    FROM bookings
    WHERE id = :booking_id
""")

_GET_BY_PAYMENT_ORDER_SQL = text(f"""
    SELECT {_BOOKING_COLUMNS}
    FROM bookings
    WHERE payment_order_id = :payment_order_id
""")

_CAS_BOOKING_SQL = text(f"""
    UPDATE bookings
    SET status = :status,
        escrow_status = :escrow_status,
        payment_reference = COALESCE(CAST(:payment_reference AS TEXT), payment_reference),
        refund_amount = COALESCE(CAST(:refund_amount AS BIGINT), refund_amount),
        cancelled_by = COALESCE(CAST(:cancelled_by AS TEXT), cancelled_by),
        cancelled_from_status = COALESCE(
            CAST(:cancelled_from_status AS TEXT), cancelled_from_status),
        cancelled_at = CASE
            WHEN :stamp_cancelled THEN COALESCE(cancelled_at, NOW())
            ELSE cancelled_at END,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :booking_id AND version = :expected_version
    RETURNING {_BOOKING_COLUMNS}
""")

_SET_PAYMENT_ORDER_SQL = text(f"""
    UPDATE bookings
    SET payment_order_id = :payment_order_id,
        updated_at = NOW()
    WHERE id = :booking_id AND status = 'pending_payment'
    RETURNING {_BOOKING_COLUMNS}
""")

# A companion cancelling a booking they had accepted; shared with the admin report
COMPANION_CANCELLATION_PREDICATE = """
    cancelled_by = companion_id
    AND cancelled_from_status = 'accepted'
    AND cancelled_at >= :since
"""

# Status filter honours lazy expiry: a lapsed pending_payment row is "expired"
_LIST_FOR_USER_SQL = text(f"""
    SELECT {_BOOKING_COLUMNS}
    FROM bookings
    WHERE ((:role = 'companion' AND companion_id = :user_id)
           OR (:role <> 'companion' AND seeker_id = :user_id))
      AND (CAST(:status AS TEXT) IS NULL
           OR (CAST(:status AS TEXT) = 'expired'
               AND (status = 'expired'
                    OR (status = 'pending_payment' AND request_expires_at <= :now)))
           OR (CAST(:status AS TEXT) = 'pending_payment'
               AND status = 'pending_payment' AND request_expires_at > :now)
           OR (CAST(:status AS TEXT) NOT IN ('expired', 'pending_payment')
               AND status = CAST(:status AS TEXT)))
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < CAST(:cursor_id AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_LAPSED_UNPAID_SQL = text(f"""
    SELECT {_BOOKING_COLUMNS}
    FROM bookings
    WHERE status = 'pending_payment'
      AND request_expires_at <= :now
    ORDER BY request_expires_at
    LIMIT :limit
""")

_COUNT_COMPANION_CANCELLATIONS_SQL = text(f"""
    SELECT COUNT(*) AS cnt
    FROM bookings
    WHERE companion_id = :companion_id
      AND {COMPANION_CANCELLATION_PREDICATE}
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_booking(row: Any) -> Booking:
    return Booking(
        id=row.id,
        availability_id=row.availability_id,
        companion_id=row.companion_id,
        seeker_id=row.seeker_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        duration_minutes=row.duration_minutes,
        base_price=row.base_price,
        platform_fee=row.platform_fee,
        total_amount=row.total_amount,
        companion_payout=row.companion_payout,
        status=BookingStatus(row.status),
        escrow_status=EscrowStatus(row.escrow_status),
        payment_order_id=row.payment_order_id,
        payment_reference=row.payment_reference,
        request_expires_at=row.request_expires_at,
        refund_amount=row.refund_amount,
        cancelled_by=row.cancelled_by,
        cancelled_from_status=(
            BookingStatus(row.cancelled_from_status) if row.cancelled_from_status else None
        ),
        cancelled_at=row.cancelled_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class BookingRepository:
    async def insert(self, db: AsyncSession, booking: Booking) -> Booking:
        result = await db.execute(
            _INSERT_BOOKING_SQL,
            {
                "id": booking.id,
                "availability_id": booking.availability_id,
                "companion_id": booking.companion_id,
                "seeker_id": booking.seeker_id,
                "date": booking.date,
                "start_time": booking.start_time,
                "end_time": booking.end_time,
                "duration_minutes": booking.duration_minutes,
                "base_price": booking.base_price,
                "platform_fee": booking.platform_fee,
                "total_amount": booking.total_amount,
                "companion_payout": booking.companion_payout,
                "status": booking.status.value,
                "escrow_status": booking.escrow_status.value,
                "request_expires_at": booking.request_expires_at,
            },
        )
        return _row_to_booking(result.fetchone())

    async def get_by_id(self, db: AsyncSession, booking_id: str) -> Booking | None:
        row = (await db.execute(_GET_BOOKING_SQL, {"booking_id": booking_id})).fetchone()
        return _row_to_booking(row) if row else None

    async def get_by_payment_order_id(
        self, db: AsyncSession, payment_order_id: str
    ) -> Booking | None:
        row = (
            await db.execute(_GET_BY_PAYMENT_ORDER_SQL, {"payment_order_id": payment_order_id})
        ).fetchone()
        return _row_to_booking(row) if row else None

    async def compare_and_set(
        self,
        db: AsyncSession,
        booking_id: str,
        expected_version: int,
        status: BookingStatus,
        escrow_status: EscrowStatus,
        *,
        payment_reference: str | None = None,
        refund_amount: int | None = None,
        cancelled_by: str | None = None,
        cancelled_from_status: BookingStatus | None = None,
    ) -> Booking | None:
        result = await db.execute(
            _CAS_BOOKING_SQL,
            {
                "booking_id": booking_id,
                "expected_version": expected_version,
                "status": status.value,
                "escrow_status": escrow_status.value,
                "payment_reference": payment_reference,
                "refund_amount": refund_amount,
                "cancelled_by": cancelled_by,
                "cancelled_from_status": (
                    cancelled_from_status.value if cancelled_from_status else None
                ),
                "stamp_cancelled": status == BookingStatus.CANCELLED,
            },
        )
        row = result.fetchone()
        return _row_to_booking(row) if row else None

    async def set_payment_order_id(
        self, db: AsyncSession, booking_id: str, payment_order_id: str
    ) -> Booking | None:
        result = await db.execute(
            _SET_PAYMENT_ORDER_SQL,
            {"booking_id": booking_id, "payment_order_id": payment_order_id},
        )
        row = result.fetchone()
        return _row_to_booking(row) if row else None

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: BookingStatus | None,
        cursor_id: str | None,
        limit: int,
        now: datetime,
    ) -> list[Booking]:
        result = await db.execute(
            _LIST_FOR_USER_SQL,
            {
                "user_id": user_id,
                "role": role,
                "status": status.value if status else None,
                "cursor_id": cursor_id,
                "limit": limit,
                "now": now,
            },
        )
        return [_row_to_booking(row) for row in result.fetchall()]

    async def list_lapsed_unpaid(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[Booking]:
        result = await db.execute(_LIST_LAPSED_UNPAID_SQL, {"now": now, "limit": limit})
        return [_row_to_booking(row) for row in result.fetchall()]

    async def count_companion_cancellations(
        self, db: AsyncSession, companion_id: str, since: datetime
    ) -> int:
        result = await db.execute(
            _COUNT_COMPANION_CANCELLATIONS_SQL,
            {"companion_id": companion_id, "since": since},
        )
        return int(result.scalar_one())
