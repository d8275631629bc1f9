"""UTC and platform-local datetime utilities."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from config.settings import settings

_LOCAL_TZ = ZoneInfo(settings.TIMEZONE)


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def local_tz() -> ZoneInfo:
    """Timezone that slot dates and wall-clock times are expressed in."""
    return _LOCAL_TZ


def local_datetime(day: date, at: time) -> datetime:
    """Combine a slot date and time-of-day into an aware datetime in the platform timezone."""
    return datetime.combine(day, at, tzinfo=_LOCAL_TZ)


def to_local(moment: datetime) -> datetime:
    """Convert an aware datetime to the platform timezone."""
    return moment.astimezone(_LOCAL_TZ)
