"""Admin application service: invariants, escrow stats, expiry sweep, reliability report.

The reliability report counts exactly what the companion-facing counter
counts: companions cancelling bookings they had accepted, by cancellation time.
"""

from datetime import timedelta
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cb_admin.domain.invariants import verify_all
from src.cb_booking.application.service import BookingService
from src.cb_booking.infrastructure.persistence import COMPANION_CANCELLATION_PREDICATE
from src.cb_common.datetime_utils import utc_now
from src.cb_common.enums import KycStatus
from src.cb_common.errors import UserNotFoundError
from src.cb_gateway.user.identity import UserKycVerification

_ESCROW_STATS_SQL = text("""
    SELECT
        COALESCE(SUM(total_amount) FILTER (WHERE escrow_status = 'held'), 0) AS held,
        COALESCE(SUM(total_amount) FILTER (WHERE escrow_status = 'disputed'), 0) AS disputed,
        COALESCE(SUM(companion_payout) FILTER (WHERE escrow_status = 'released'), 0)
            AS released_to_companions,
        COALESCE(SUM(platform_fee) FILTER (WHERE escrow_status = 'released'), 0)
            AS platform_fees_earned,
        COALESCE(SUM(refund_amount) FILTER (WHERE escrow_status = 'refunded'), 0)
            AS refunded_to_seekers,
        (SELECT COALESCE(SUM(requested_amount), 0) FROM payouts
          WHERE status IN ('pending', 'approved', 'processing')) AS payouts_in_flight,
        (SELECT COALESCE(SUM(amount), 0) FROM payouts
          WHERE status = 'completed') AS payouts_sent
    FROM bookings
""")

_STATUS_COUNTS_SQL = text("""
    SELECT status, COUNT(*) AS cnt FROM bookings GROUP BY status ORDER BY status
""")

_REPEATED_CANCELLATIONS_SQL = text(f"""
    SELECT companion_id AS user_id,
           COUNT(*) AS cancellations,
           array_agg(id ORDER BY id) AS booking_ids
    FROM bookings
    WHERE {COMPANION_CANCELLATION_PREDICATE}
    GROUP BY companion_id
    HAVING COUNT(*) >= :threshold
    ORDER BY COUNT(*) DESC
""")

_HIGH_SEVERITY_CANCELLATIONS = 5


class AdminService:
    def __init__(self, bookings: BookingService | None = None) -> None:
        self._bookings = bookings or BookingService()
        self._kyc = UserKycVerification()

    async def verify_all_invariants(self, db: AsyncSession) -> dict[str, object]:
        violations = await verify_all(db)
        return {"ok": len(violations) == 0, "violations": violations}

    async def get_escrow_stats(self, db: AsyncSession) -> dict[str, Any]:
        row = (await db.execute(_ESCROW_STATS_SQL)).fetchone()
        counts = (await db.execute(_STATUS_COUNTS_SQL)).fetchall()
        return {
            "escrow_held": int(row.held),
            "escrow_disputed": int(row.disputed),
            "released_to_companions": int(row.released_to_companions),
            "platform_fees_earned": int(row.platform_fees_earned),
            "refunded_to_seekers": int(row.refunded_to_seekers),
            "payouts_in_flight": int(row.payouts_in_flight),
            "payouts_sent": int(row.payouts_sent),
            "bookings_by_status": {r.status: int(r.cnt) for r in counts},
        }

    async def expire_lapsed_bookings(self, db: AsyncSession, limit: int) -> dict[str, Any]:
        expired = await self._bookings.expire_lapsed(db, limit)
        return {"expired_count": len(expired), "booking_ids": expired}

    async def repeated_cancellations(self, db: AsyncSession) -> list[dict[str, Any]]:
        since = utc_now() - timedelta(days=settings.CANCELLATION_WINDOW_DAYS)
        rows = (
            await db.execute(
                _REPEATED_CANCELLATIONS_SQL,
                {"since": since, "threshold": settings.CANCELLATION_ALERT_THRESHOLD},
            )
        ).fetchall()
        return [
            {
                "user_id": r.user_id,
                "cancellations": int(r.cancellations),
                "severity": "high" if r.cancellations >= _HIGH_SEVERITY_CANCELLATIONS else "medium",
                "window_days": settings.CANCELLATION_WINDOW_DAYS,
                "booking_ids": list(r.booking_ids),
            }
            for r in rows
        ]

    async def set_kyc_status(
        self, db: AsyncSession, user_id: str, status: KycStatus
    ) -> dict[str, str]:
        try:
            found = await self._kyc.record_status(db, user_id, status)
            if not found:
                raise UserNotFoundError(user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return {"user_id": user_id, "kyc_status": status.value}
