"""Repository Protocol for payouts — unit tests inject a mock conforming to it."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.enums import PayoutStatus
from src.cb_payout.domain.models import Payout


class PayoutRepositoryProtocol(Protocol):
    async def insert_if_absent(self, db: AsyncSession, payout: Payout) -> Payout | None: ...

    async def get_by_id(self, db: AsyncSession, payout_id: str) -> Payout | None: ...

    async def get_by_idempotency_key(self, db: AsyncSession, key: str) -> Payout | None: ...

    async def compare_and_set_status(
        self,
        db: AsyncSession,
        payout_id: str,
        expected_version: int,
        new_status: PayoutStatus,
        processed_by: str,
        rejection_reason: str | None = None,
    ) -> Payout | None: ...

    async def list_payouts(
        self,
        db: AsyncSession,
        companion_id: str | None,
        status: PayoutStatus | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Payout]: ...
