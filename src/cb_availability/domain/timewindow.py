"""TimeWindow / OverlapResolver — pure slot arithmetic, no state.

All intervals are half-open: [start, end). Touching endpoints do not overlap.
`overlaps` is the only predicate used to reject a new slot on publish and a
booking window that no longer fits its slot.
"""

from datetime import date, datetime, time, timedelta

from src.cb_common.datetime_utils import local_datetime, to_local

MINUTES_PER_DAY = 24 * 60


def overlaps(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open interval intersection test."""
    return a_start < b_end and b_start < a_end


def to_minutes(at: time) -> int:
    return at.hour * 60 + at.minute


def from_minutes(minutes: int) -> time:
    if not (0 <= minutes < MINUTES_PER_DAY):
        raise ValueError(f"Minute offset out of range for a single day: {minutes}")
    return time(minutes // 60, minutes % 60)


def duration_minutes(start: time, end: time) -> int:
    """Length of [start, end) in minutes. Slots never cross midnight."""
    minutes = to_minutes(end) - to_minutes(start)
    if minutes <= 0:
        raise ValueError(f"End time {end} must be after start time {start}")
    return minutes


def window_end(start: time, minutes: int) -> time:
    return from_minutes(to_minutes(start) + minutes)


def candidate_start_times(
    slot_date: date,
    slot_start: time,
    slot_end: time,
    duration: int,
    now: datetime,
    granularity: int = 15,
) -> list[time]:
    """Ordered legal start times for a booking of `duration` minutes inside a slot.

    Offsets step from the slot start by `granularity` minutes and must satisfy
    offset + duration <= slot end. On the slot's own date every candidate must
    be strictly after `now` (wall clock in the platform timezone); past dates
    yield nothing.
    """
    if duration <= 0 or granularity <= 0:
        return []

    today = to_local(now).date()
    if slot_date < today:
        return []

    first = to_minutes(slot_start)
    last_start = to_minutes(slot_end) - duration
    candidates: list[time] = []
    for offset in range(first, last_start + 1, granularity):
        start = from_minutes(offset)
        if slot_date == today and local_datetime(slot_date, start) <= now:
            continue
        candidates.append(start)
    return candidates


def meetup_bounds(day: date, start: time, end: time) -> tuple[datetime, datetime]:
    """Aware start/end datetimes of a window in the platform timezone."""
    start_at = local_datetime(day, start)
    return start_at, start_at + timedelta(minutes=duration_minutes(start, end))
