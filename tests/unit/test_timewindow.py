"""Tests for slot arithmetic: overlap and legal start times."""

from datetime import date, time, timedelta, timezone

import pytest

from src.cb_availability.domain.models import AvailabilitySlot
from src.cb_availability.domain.timewindow import (
    candidate_start_times,
    duration_minutes,
    meetup_bounds,
    overlaps,
    window_end,
)
from src.cb_common.datetime_utils import local_datetime

DAY = date(2026, 11, 20)


class TestOverlaps:
    def test_touching_endpoints_do_not_overlap(self) -> None:
        assert not overlaps(time(10), time(12), time(12), time(14))

    def test_contained_window_overlaps(self) -> None:
        assert overlaps(time(10), time(14), time(11), time(12))

    def test_partial_overlap(self) -> None:
        assert overlaps(time(10), time(12), time(11, 30), time(13))

    def test_symmetric(self) -> None:
        assert overlaps(time(11, 30), time(13), time(10), time(12))


class TestDuration:
    def test_minutes(self) -> None:
        assert duration_minutes(time(10), time(12, 30)) == 150

    def test_end_before_start_rejected(self) -> None:
        with pytest.raises(ValueError):
            duration_minutes(time(12), time(10))

    def test_window_end_past_midnight_rejected(self) -> None:
        with pytest.raises(ValueError):
            window_end(time(23), 90)


class TestCandidateStartTimes:
    def test_future_day_steps_by_granularity(self) -> None:
        now = local_datetime(DAY - timedelta(days=1), time(9))
        starts = candidate_start_times(DAY, time(10), time(12), 60, now, granularity=15)
        assert starts == [time(10), time(10, 15), time(10, 30), time(10, 45), time(11)]

    def test_exact_fit_yields_single_start(self) -> None:
        now = local_datetime(DAY - timedelta(days=1), time(9))
        assert candidate_start_times(DAY, time(10), time(12), 120, now) == [time(10)]

    def test_duration_longer_than_slot(self) -> None:
        now = local_datetime(DAY - timedelta(days=1), time(9))
        assert candidate_start_times(DAY, time(10), time(11), 90, now) == []

    def test_same_day_drops_past_and_current_starts(self) -> None:
        now = local_datetime(DAY, time(10, 15))
        starts = candidate_start_times(DAY, time(10), time(12), 60, now, granularity=15)
        assert starts == [time(10, 30), time(10, 45), time(11)]

    def test_past_date_is_empty(self) -> None:
        now = local_datetime(DAY + timedelta(days=1), time(9))
        assert candidate_start_times(DAY, time(10), time(12), 60, now) == []

    def test_now_in_utc_is_compared_in_local_time(self) -> None:
        now = local_datetime(DAY, time(10)).astimezone(timezone.utc)
        starts = candidate_start_times(DAY, time(10), time(11), 30, now, granularity=15)
        assert starts == [time(10, 15), time(10, 30)]


def test_meetup_bounds() -> None:
    start, end = meetup_bounds(DAY, time(18), time(20))
    assert end - start == timedelta(hours=2)
    assert start == local_datetime(DAY, time(18))


class TestSlotOverlap:
    def _slot(self, start: time, end: time, companion: str = "c1", day: date = DAY):
        return AvailabilitySlot(
            id="sl", companion_id=companion, date=day, start_time=start,
            end_time=end, price_per_hour=50000,
        )

    def test_same_companion_same_day(self) -> None:
        assert self._slot(time(10), time(12)).overlaps(self._slot(time(11), time(13)))

    def test_other_companion_never_conflicts(self) -> None:
        a = self._slot(time(10), time(12))
        b = self._slot(time(10), time(12), companion="c2")
        assert not a.overlaps(b)

    def test_other_day_never_conflicts(self) -> None:
        a = self._slot(time(10), time(12))
        b = self._slot(time(10), time(12), day=DAY + timedelta(days=1))
        assert not a.overlaps(b)
