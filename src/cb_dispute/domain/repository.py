"""Repository Protocol for disputes — unit tests inject a mock conforming to it."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.enums import DisputeStatus
from src.cb_dispute.domain.models import Dispute


class DisputeRepositoryProtocol(Protocol):
    async def insert_if_no_active(self, db: AsyncSession, dispute: Dispute) -> Dispute | None: ...

    async def get_by_id(self, db: AsyncSession, dispute_id: str) -> Dispute | None: ...

    async def list_for_booking(self, db: AsyncSession, booking_id: str) -> list[Dispute]: ...

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
    ) -> Dispute | None: ...

    async def list_disputes(
        self,
        db: AsyncSession,
        user_id: str | None,
        status: DisputeStatus | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Dispute]: ...
