"""LedgerCalculator — the withdrawable balance is always derived, never stored.

    available = max(0, released earnings + referral/campaign credits
                       - completed payouts - pending/approved/processing payouts)

Refund transactions reverse a rejected payout's debit. The rejected payout
already dropped out of the in-flight sum, so counting the refund as well
would credit the companion twice.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_wallet.domain.models import LedgerSnapshot


def raw_balance(snapshot: LedgerSnapshot) -> int:
    return (
        snapshot.released_earnings
        + snapshot.bonus_credits
        - snapshot.completed_payouts
        - snapshot.in_flight_payouts
    )


def compute_available_balance(snapshot: LedgerSnapshot) -> int:
    return max(0, raw_balance(snapshot))


class LedgerSnapshotReader(Protocol):
    async def snapshot(self, db: AsyncSession, companion_id: str) -> LedgerSnapshot: ...


class LedgerCalculator:
    def __init__(self, reader: LedgerSnapshotReader) -> None:
        self._reader = reader

    async def snapshot(self, db: AsyncSession, companion_id: str) -> LedgerSnapshot:
        return await self._reader.snapshot(db, companion_id)

    async def available_balance(self, db: AsyncSession, companion_id: str) -> int:
        return compute_available_balance(await self._reader.snapshot(db, companion_id))
