"""AvailabilityService — publish/withdraw slots and the slot-consumption hooks.

publish/withdraw own their transaction (commit or rollback here).
mark_booked/mark_available are called by the booking service INSIDE its
transaction and never commit.
"""

import logging
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cb_availability.domain.models import AvailabilitySlot
from src.cb_availability.domain.repository import SlotRepositoryProtocol
from src.cb_availability.domain.timewindow import candidate_start_times
from src.cb_availability.infrastructure.persistence import SlotRepository
from src.cb_common.database import advisory_xact_lock
from src.cb_common.datetime_utils import local_datetime, to_local, utc_now
from src.cb_common.enums import SlotStatus
from src.cb_common.errors import (
    ConflictError,
    InvalidSlotError,
    PermissionDeniedError,
    SlotInUseError,
    SlotNotFoundError,
    SlotUnavailableError,
)
from src.cb_common.id_generator import generate_id
from src.cb_gateway.user.identity import IdentityVerificationProtocol, UserKycVerification

logger = logging.getLogger(__name__)


def slot_lock_key(companion_id: str, day: date) -> str:
    return f"slot:{companion_id}:{day.isoformat()}"


class AvailabilityService:
    def __init__(
        self,
        repo: SlotRepositoryProtocol | None = None,
        identity: IdentityVerificationProtocol | None = None,
    ) -> None:
        self._repo: SlotRepositoryProtocol = repo or SlotRepository()
        self._identity: IdentityVerificationProtocol = identity or UserKycVerification()

    # ------------------------------------------------------------------
    # Companion commands
    # ------------------------------------------------------------------

    async def publish(
        self, db: AsyncSession, companion_id: str, slot: AvailabilitySlot
    ) -> AvailabilitySlot:
        """Publish a new available slot.

        Raises ConflictError if it overlaps any other slot the companion has on
        that date. Publishes for the same (companion, date) are serialised by
        an advisory lock so two overlapping slots cannot both pass the check.
        """
        self._validate_shape(slot, utc_now())
        slot.id = slot.id or generate_id("sl_")
        slot.companion_id = companion_id
        slot.status = SlotStatus.AVAILABLE
        try:
            await self._identity.require_verified(db, companion_id)
            await advisory_xact_lock(db, slot_lock_key(companion_id, slot.date))
            existing = await self._repo.list_for_day(db, companion_id, slot.date)
            for other in existing:
                if slot.overlaps(other):
                    raise ConflictError(other.id)
            created = await self._repo.insert(db, slot)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Slot %s published by %s for %s %s-%s",
            created.id, companion_id, created.date, created.start_time, created.end_time,
        )
        return created

    async def withdraw(self, db: AsyncSession, companion_id: str, slot_id: str) -> None:
        """Delete a slot that no live booking references."""
        try:
            slot = await self._get_owned(db, companion_id, slot_id)
            await advisory_xact_lock(db, slot_lock_key(companion_id, slot.date))
            if await self._repo.live_booked_windows(db, slot_id):
                raise SlotInUseError(slot_id)
            if not await self._repo.delete(db, slot_id):
                raise SlotNotFoundError(slot_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Slot %s withdrawn by %s", slot_id, companion_id)

    # ------------------------------------------------------------------
    # Booking hooks (caller owns the transaction)
    # ------------------------------------------------------------------

    async def ensure_room(self, db: AsyncSession, slot: AvailabilitySlot) -> None:
        """A slot is consumed whole: it has room only while no live booking claims it."""
        if await self._repo.live_booked_windows(db, slot.id):
            raise SlotUnavailableError(slot.id)

    async def mark_booked(
        self, db: AsyncSession, slot_id: str, expected_version: int
    ) -> AvailabilitySlot:
        updated = await self._repo.compare_and_set_status(
            db, slot_id, expected_version, SlotStatus.BOOKED
        )
        if updated is None:
            # Another booking (or a withdraw) changed the slot after we read it
            raise SlotUnavailableError(slot_id)
        return updated

    async def mark_available(self, db: AsyncSession, slot_id: str) -> AvailabilitySlot | None:
        """Return a booked slot to the pool after its booking died.

        Re-runs the overlap check under the publish lock. If an overlapping
        slot was published in the meantime the stale slot is deleted and None
        is returned.
        """
        slot = await self._repo.get_by_id(db, slot_id)
        if slot is None:
            logger.warning("Slot %s vanished before it could be released", slot_id)
            return None
        await advisory_xact_lock(db, slot_lock_key(slot.companion_id, slot.date))
        if slot.is_available:
            return slot
        if await self._repo.live_booked_windows(db, slot_id):
            return slot

        siblings = await self._repo.list_for_day(db, slot.companion_id, slot.date)
        conflict = next(
            (o for o in siblings if o.id != slot.id and slot.overlaps(o)), None
        )
        if conflict is not None:
            await self._repo.delete(db, slot.id)
            logger.info("Slot %s superseded by %s; deleted on release", slot.id, conflict.id)
            return None

        released = await self._repo.compare_and_set_status(
            db, slot.id, slot.version, SlotStatus.AVAILABLE
        )
        if released is None:
            raise SlotUnavailableError(slot.id)
        return released

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_slot(self, db: AsyncSession, slot_id: str) -> AvailabilitySlot:
        slot = await self._repo.get_by_id(db, slot_id)
        if slot is None:
            raise SlotNotFoundError(slot_id)
        return slot

    async def search(
        self,
        db: AsyncSession,
        companion_id: str | None,
        day: date | None,
        city: str | None,
        area: str | None,
        limit: int,
    ) -> list[AvailabilitySlot]:
        today = to_local(utc_now()).date()
        return await self._repo.search_open(db, companion_id, day, city, area, today, limit)

    async def start_times(
        self, db: AsyncSession, slot_id: str, duration: int
    ) -> list[str]:
        slot = await self.get_slot(db, slot_id)
        if await self._repo.live_booked_windows(db, slot_id):
            return []
        times = candidate_start_times(
            slot.date,
            slot.start_time,
            slot.end_time,
            duration,
            utc_now(),
            settings.SLOT_GRANULARITY_MINUTES,
        )
        return [t.strftime("%H:%M") for t in times]

    # ------------------------------------------------------------------

    async def _get_owned(
        self, db: AsyncSession, companion_id: str, slot_id: str
    ) -> AvailabilitySlot:
        slot = await self._repo.get_by_id(db, slot_id)
        if slot is None:
            raise SlotNotFoundError(slot_id)
        if slot.companion_id != companion_id:
            raise PermissionDeniedError("Slot belongs to another companion")
        return slot

    @staticmethod
    def _validate_shape(slot: AvailabilitySlot, now: datetime) -> None:
        if slot.end_time <= slot.start_time:
            raise InvalidSlotError("end_time must be after start_time")
        if slot.price_per_hour <= 0:
            raise InvalidSlotError("price_per_hour must be positive")
        if local_datetime(slot.date, slot.end_time) <= now:
            raise InvalidSlotError("slot has already ended")
