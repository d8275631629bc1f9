"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import date
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_availability.domain.models import AvailabilitySlot, BookedWindow
from src.cb_common.enums import SlotStatus


class SlotRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, slot: AvailabilitySlot) -> AvailabilitySlot: ...

    async def get_by_id(self, db: AsyncSession, slot_id: str) -> AvailabilitySlot | None: ...

    async def list_for_day(
        self, db: AsyncSession, companion_id: str, day: date
    ) -> list[AvailabilitySlot]: ...

    async def compare_and_set_status(
        self,
        db: AsyncSession,
        slot_id: str,
        expected_version: int,
        new_status: SlotStatus,
    ) -> AvailabilitySlot | None: ...

    async def delete(self, db: AsyncSession, slot_id: str) -> bool: ...

    async def live_booked_windows(
        self, db: AsyncSession, slot_id: str
    ) -> list[BookedWindow]: ...

    async def search_open(
        self,
        db: AsyncSession,
        companion_id: str | None,
        day: date | None,
        city: str | None,
        area: str | None,
        today: date,
        limit: int,
    ) -> list[AvailabilitySlot]: ...
