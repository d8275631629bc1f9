"""Platform-wide money and booking invariant checks.

Each check returns human-readable violation strings; an empty list means the
invariant holds. They read committed state only and never repair anything.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_LIVE = """
    (b{n}.status IN ('pending', 'accepted', 'completed', 'disputed')
     OR (b{n}.status = 'pending_payment' AND b{n}.request_expires_at > NOW()))
"""

# Two live bookings claiming overlapping time on the same slot
_DOUBLE_BOOKING_SQL = text(f"""
    SELECT b1.id AS first_id, b2.id AS second_id, b1.availability_id
    FROM bookings b1
    JOIN bookings b2
      ON b1.availability_id = b2.availability_id
     AND b1.id < b2.id
     AND b1.start_time < b2.end_time
     AND b2.start_time < b1.end_time
    WHERE {_LIVE.format(n=1)} AND {_LIVE.format(n=2)}
""")

# Status / escrow pairs the booking state machine can actually produce
_ESCROW_MISMATCH_SQL = text("""
    SELECT id, status, escrow_status
    FROM bookings
    WHERE NOT (
        (status IN ('pending_payment', 'expired', 'failed') AND escrow_status = 'pending')
     OR (status IN ('pending', 'accepted') AND escrow_status = 'held')
     OR (status = 'completed' AND escrow_status IN ('released', 'refunded'))
     OR (status = 'cancelled' AND escrow_status = 'refunded')
     OR (status = 'disputed' AND escrow_status IN ('disputed', 'refunded'))
    )
""")

_REFUND_OVER_TOTAL_SQL = text("""
    SELECT id, refund_amount, total_amount
    FROM bookings
    WHERE refund_amount > total_amount OR refund_amount < 0
""")

# Σ refund entries must equal Σ rejected payouts, per companion
_PAYOUT_REPLAY_SQL = text("""
    WITH refunds AS (
        SELECT user_id AS companion_id, SUM(amount) AS total
        FROM wallet_transactions
        WHERE transaction_type = 'refund'
        GROUP BY user_id
    ), rejected AS (
        SELECT companion_id, SUM(requested_amount) AS total
        FROM payouts
        WHERE status = 'rejected'
        GROUP BY companion_id
    )
    SELECT COALESCE(r.companion_id, j.companion_id) AS companion_id,
           COALESCE(r.total, 0) AS refunds,
           COALESCE(j.total, 0) AS rejected
    FROM refunds r
    FULL OUTER JOIN rejected j ON r.companion_id = j.companion_id
    WHERE COALESCE(r.total, 0) <> COALESCE(j.total, 0)
""")

# Raw (unclamped) balance per companion; negative means more went out than settled
_NEGATIVE_BALANCE_SQL = text("""
    WITH earned AS (
        SELECT companion_id, SUM(companion_payout) AS total
        FROM bookings WHERE escrow_status = 'released'
        GROUP BY companion_id
    ), credits AS (
        SELECT user_id AS companion_id, SUM(amount) AS total
        FROM wallet_transactions
        WHERE transaction_type IN ('referral', 'campaign_bonus')
        GROUP BY user_id
    ), paid AS (
        SELECT companion_id, SUM(requested_amount) AS total
        FROM payouts
        WHERE status IN ('completed', 'pending', 'approved', 'processing')
        GROUP BY companion_id
    )
    SELECT p.companion_id,
           COALESCE(e.total, 0) + COALESCE(c.total, 0) - p.total AS raw_balance
    FROM paid p
    LEFT JOIN earned e ON e.companion_id = p.companion_id
    LEFT JOIN credits c ON c.companion_id = p.companion_id
    WHERE COALESCE(e.total, 0) + COALESCE(c.total, 0) - p.total < 0
""")


async def check_no_double_booking(db: AsyncSession) -> list[str]:
    rows = (await db.execute(_DOUBLE_BOOKING_SQL)).fetchall()
    return [
        f"slot {r.availability_id}: live bookings {r.first_id} and {r.second_id} overlap"
        for r in rows
    ]


async def check_escrow_states(db: AsyncSession) -> list[str]:
    violations = [
        f"booking {r.id}: status {r.status} with escrow {r.escrow_status}"
        for r in (await db.execute(_ESCROW_MISMATCH_SQL)).fetchall()
    ]
    violations.extend(
        f"booking {r.id}: refund {r.refund_amount} outside [0, {r.total_amount}]"
        for r in (await db.execute(_REFUND_OVER_TOTAL_SQL)).fetchall()
    )
    return violations


async def check_payout_replay(db: AsyncSession) -> list[str]:
    rows = (await db.execute(_PAYOUT_REPLAY_SQL)).fetchall()
    return [
        f"companion {r.companion_id}: refunds {r.refunds} != rejected payouts {r.rejected}"
        for r in rows
    ]


async def check_non_negative_balances(db: AsyncSession) -> list[str]:
    rows = (await db.execute(_NEGATIVE_BALANCE_SQL)).fetchall()
    return [f"companion {r.companion_id}: raw balance {r.raw_balance}" for r in rows]


async def verify_all(db: AsyncSession) -> list[str]:
    violations: list[str] = []
    for check in (
        check_no_double_booking,
        check_escrow_states,
        check_payout_replay,
        check_non_negative_balances,
    ):
        found = await check(db)
        for msg in found:
            logger.error("Invariant violated (%s): %s", check.__name__, msg)
        violations.extend(found)
    return violations
