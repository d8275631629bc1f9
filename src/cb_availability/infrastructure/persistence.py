"""SlotRepository — concrete implementation of SlotRepositoryProtocol.

Status changes are compare-and-set on the row's `version`: a result of 0 rows
means another transaction changed the slot first and the caller lost the race.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import date
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_availability.domain.models import AvailabilitySlot, BookedWindow
from src.cb_common.enums import SlotStatus

# A booking still claims its slot unless it is dead (cancelled/expired/failed)
# or an unpaid request whose payment window has lapsed.
_LIVE_BOOKING_PREDICATE = """
    (b.status IN ('pending', 'accepted', 'completed', 'disputed')
     OR (b.status = 'pending_payment' AND b.request_expires_at > NOW()))
"""

_SLOT_COLUMNS = """
    id, companion_id, date, start_time, end_time, price_per_hour,
    status, city, area, version, created_at, updated_at
"""

_INSERT_SLOT_SQL = text(f"""
    INSERT INTO availability_slots
        (id, companion_id, date, start_time, end_time, price_per_hour, status, city, area)
    VALUES
        (:id, :companion_id, :date, :start_time, :end_time, :price_per_hour, :status, :city, :area)
    RETURNING {_SLOT_COLUMNS}
""")

_GET_SLOT_SQL = text(f"""
    SELECT {_SLOT_COLUMNS}
    FROM availability_slots
    WHERE id = :slot_id
""")

_LIST_FOR_DAY_SQL = text(f"""
    SELECT {_SLOT_COLUMNS}
    FROM availability_slots
    WHERE companion_id = :companion_id
      AND date = :day
    ORDER BY start_time
""")

_CAS_STATUS_SQL = text(f"""
    UPDATE availability_slots
    SET status = :new_status,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :slot_id AND version = :expected_version
    RETURNING {_SLOT_COLUMNS}
""")

_DELETE_SLOT_SQL = text("""
    DELETE FROM availability_slots
    WHERE id = :slot_id
    RETURNING id
""")

_LIVE_WINDOWS_SQL = text(f"""
    SELECT b.id AS booking_id, b.start_time, b.end_time
    FROM bookings b
    WHERE b.availability_id = :slot_id
      AND {_LIVE_BOOKING_PREDICATE}
    ORDER BY b.start_time
""")

_SEARCH_OPEN_SQL = text(f"""
    SELECT s.id, s.companion_id, s.date, s.start_time, s.end_time, s.price_per_hour,
           s.status, s.city, s.area, s.version, s.created_at, s.updated_at
    FROM availability_slots s
    WHERE s.date >= CAST(:today AS DATE)
      AND (CAST(:companion_id AS TEXT) IS NULL OR s.companion_id = CAST(:companion_id AS TEXT))
      AND (CAST(:day AS DATE) IS NULL OR s.date = CAST(:day AS DATE))
      AND (CAST(:city AS TEXT) IS NULL OR s.city = CAST(:city AS TEXT))
      AND (CAST(:area AS TEXT) IS NULL OR s.area = CAST(:area AS TEXT))
      AND (
        s.status = 'available'
        OR NOT EXISTS (
            SELECT 1 FROM bookings b
            WHERE b.availability_id = s.id AND {_LIVE_BOOKING_PREDICATE}
        )
      )
    ORDER BY s.date, s.start_time, s.id
    LIMIT :limit
""")


def _row_to_slot(row: Any) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=row.id,
        companion_id=row.companion_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        price_per_hour=row.price_per_hour,
        status=SlotStatus(row.status),
        city=row.city,
        area=row.area,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SlotRepository:
    """Concrete repository — raw SQL, atomic at the statement level."""

    async def insert(self, db: AsyncSession, slot: AvailabilitySlot) -> AvailabilitySlot:
        result = await db.execute(
            _INSERT_SLOT_SQL,
            {
                "id": slot.id,
                "companion_id": slot.companion_id,
                "date": slot.date,
                "start_time": slot.start_time,
                "end_time": slot.end_time,
                "price_per_hour": slot.price_per_hour,
                "status": slot.status.value,
                "city": slot.city,
                "area": slot.area,
            },
        )
        return _row_to_slot(result.fetchone())

    async def get_by_id(self, db: AsyncSession, slot_id: str) -> AvailabilitySlot | None:
        result = await db.execute(_GET_SLOT_SQL, {"slot_id": slot_id})
        row = result.fetchone()
        return _row_to_slot(row) if row else None

    async def list_for_day(
        self, db: AsyncSession, companion_id: str, day: date
    ) -> list[AvailabilitySlot]:
        result = await db.execute(
            _LIST_FOR_DAY_SQL, {"companion_id": companion_id, "day": day}
        )
        return [_row_to_slot(row) for row in result.fetchall()]

    async def compare_and_set_status(
        self,
        db: AsyncSession,
        slot_id: str,
        expected_version: int,
        new_status: SlotStatus,
    ) -> AvailabilitySlot | None:
        result = await db.execute(
            _CAS_STATUS_SQL,
            {
                "slot_id": slot_id,
                "expected_version": expected_version,
                "new_status": new_status.value,
            },
        )
        row = result.fetchone()
        return _row_to_slot(row) if row else None

    async def delete(self, db: AsyncSession, slot_id: str) -> bool:
        result = await db.execute(_DELETE_SLOT_SQL, {"slot_id": slot_id})
        return result.fetchone() is not None

    async def live_booked_windows(
        self, db: AsyncSession, slot_id: str
    ) -> list[BookedWindow]:
        result = await db.execute(_LIVE_WINDOWS_SQL, {"slot_id": slot_id})
        return [
            BookedWindow(
                booking_id=row.booking_id,
                start_time=row.start_time,
                end_time=row.end_time,
            )
            for row in result.fetchall()
        ]

    async def search_open(
        self,
        db: AsyncSession,
        companion_id: str | None,
        day: date | None,
        city: str | None,
        area: str | None,
        today: date,
        limit: int,
    ) -> list[AvailabilitySlot]:
        result = await db.execute(
            _SEARCH_OPEN_SQL,
            {
                "companion_id": companion_id,
                "day": day,
                "city": city,
                "area": area,
                "today": today,
                "limit": limit,
            },
        )
        return [_row_to_slot(row) for row in result.fetchall()]
