"""Repository Protocol for wallet data — unit tests inject a mock conforming to it."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_wallet.domain.models import LedgerSnapshot, WalletTransaction


class WalletRepositoryProtocol(Protocol):
    async def snapshot(self, db: AsyncSession, companion_id: str) -> LedgerSnapshot: ...

    async def append(self, db: AsyncSession, tx: WalletTransaction) -> WalletTransaction: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: str | None,
        limit: int,
        transaction_type: str | None,
    ) -> list[WalletTransaction]: ...
