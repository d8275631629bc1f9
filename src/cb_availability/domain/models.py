"""Domain models for cb_availability — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import date, datetime, time

from src.cb_availability.domain.timewindow import duration_minutes, overlaps
from src.cb_common.enums import SlotStatus


@dataclass
class AvailabilitySlot:
    id: str
    companion_id: str
    date: date
    start_time: time
    end_time: time
    price_per_hour: int          # paise
    status: SlotStatus = SlotStatus.AVAILABLE
    city: str | None = None
    area: str | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def duration_minutes(self) -> int:
        return duration_minutes(self.start_time, self.end_time)

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE

    def overlaps(self, other: "AvailabilitySlot") -> bool:
        return (
            self.companion_id == other.companion_id
            and self.date == other.date
            and overlaps(self.start_time, self.end_time, other.start_time, other.end_time)
        )


@dataclass
class BookedWindow:
    """A live booking's claim on part of a slot."""

    booking_id: str
    start_time: time
    end_time: time
