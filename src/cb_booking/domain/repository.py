"""Repository Protocol for bookings — unit tests inject a mock conforming to it."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_booking.domain.models import Booking
from src.cb_common.enums import BookingStatus, EscrowStatus


class BookingRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, booking: Booking) -> Booking: ...

    async def get_by_id(self, db: AsyncSession, booking_id: str) -> Booking | None: ...

    async def get_by_payment_order_id(
        self, db: AsyncSession, payment_order_id: str
    ) -> Booking | None: ...

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
    ) -> Booking | None: ...

    async def set_payment_order_id(
        self, db: AsyncSession, booking_id: str, payment_order_id: str
    ) -> Booking | None: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: BookingStatus | None,
        cursor_id: str | None,
        limit: int,
        now: datetime,
    ) -> list[Booking]: ...

    async def list_lapsed_unpaid(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[Booking]: ...

    async def count_companion_cancellations(
        self, db: AsyncSession, companion_id: str, since: datetime
    ) -> int: ...
