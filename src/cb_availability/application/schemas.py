"""Pydantic schemas for cb_availability API."""

from datetime import date, time

from pydantic import BaseModel, Field, model_validator

from src.cb_availability.domain.models import AvailabilitySlot
from src.cb_common.money import paise_to_display

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PublishSlotRequest(BaseModel):
    date: date
    start_time: time
    end_time: time
    price_per_hour: int = Field(..., gt=0, description="Hourly price in paise")
    city: str | None = Field(None, max_length=64)
    area: str | None = Field(None, max_length=128)

    @model_validator(mode="after")
    def end_after_start(self) -> "PublishSlotRequest":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SlotResponse(BaseModel):
    id: str
    companion_id: str
    date: str
    start_time: str
    end_time: str
    duration_minutes: int
    price_per_hour: int
    price_per_hour_display: str
    status: str
    city: str | None
    area: str | None

    @classmethod
    def from_slot(cls, slot: AvailabilitySlot) -> "SlotResponse":
        return cls(
            id=slot.id,
            companion_id=slot.companion_id,
            date=slot.date.isoformat(),
            start_time=slot.start_time.strftime("%H:%M"),
            end_time=slot.end_time.strftime("%H:%M"),
            duration_minutes=slot.duration_minutes,
            price_per_hour=slot.price_per_hour,
            price_per_hour_display=paise_to_display(slot.price_per_hour),
            status=slot.status.value,
            city=slot.city,
            area=slot.area,
        )


class SlotListResponse(BaseModel):
    items: list[SlotResponse]


class StartTimesResponse(BaseModel):
    slot_id: str
    duration_minutes: int
    start_times: list[str]
