from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.services.recurrence import compute_next
from app.types.reminder_contract import Frequency, RecurrenceRule

UTC = timezone.utc
# 2026-10-19 is a Monday
MONDAY = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)


def rule(frequency, **kw):
    return RecurrenceRule(frequency=frequency, **kw)


def test_daily_adds_one_day():
    assert compute_next(MONDAY, rule(Frequency.DAILY)) == MONDAY + timedelta(days=1)


def test_daily_keeps_local_time_across_dst():
    ny = ZoneInfo("America/New_York")
    # 09:00 EST the day before clocks spring forward (2026-03-08)
    before = datetime(2026, 3, 7, 14, 0, tzinfo=UTC)
    nxt = compute_next(before, rule(Frequency.DAILY), tz="America/New_York")
    assert nxt == datetime(2026, 3, 8, 13, 0, tzinfo=UTC)
    assert nxt.astimezone(ny).hour == 9


def test_result_keeps_input_tzinfo():
    paris = ZoneInfo("Europe/Paris")
    prev = datetime(2026, 10, 19, 9, 0, tzinfo=paris)
    nxt = compute_next(prev, rule(Frequency.DAILY), tz="Europe/Paris")
    assert nxt.tzinfo is paris
    assert (nxt.month, nxt.day, nxt.hour) == (10, 20, 9)


def test_weekly_on_same_weekday():
    nxt = compute_next(MONDAY, rule(Frequency.WEEKLY, days_of_week=[1]))
    assert nxt == MONDAY + timedelta(days=7)


def test_weekly_without_days_adds_seven_days():
    assert compute_next(MONDAY, rule(Frequency.WEEKLY)) == MONDAY + timedelta(days=7)


def test_custom_days_of_week_picks_next_listed_day():
    r = rule(Frequency.CUSTOM_DAYS_OF_WEEK, days_of_week=[1, 3])
    wednesday = compute_next(MONDAY, r)
    assert wednesday == MONDAY + timedelta(days=2)
    assert compute_next(wednesday, r) == MONDAY + timedelta(days=7)


def test_custom_days_of_week_wraps_to_sunday():
    saturday = datetime(2026, 10, 24, 9, 0, tzinfo=UTC)
    r = rule(Frequency.CUSTOM_DAYS_OF_WEEK, days_of_week=[0])
    assert compute_next(saturday, r) == saturday + timedelta(days=1)


def test_monthly_clamps_to_last_day():
    jan31 = datetime(2026, 1, 31, 9, 0, tzinfo=UTC)
    feb = compute_next(jan31, rule(Frequency.MONTHLY))
    assert feb == datetime(2026, 2, 28, 9, 0, tzinfo=UTC)
    # without anchor days the series drifts to the clamped day
    assert compute_next(feb, rule(Frequency.MONTHLY)) == datetime(2026, 3, 28, 9, 0, tzinfo=UTC)


def test_monthly_clamps_to_leap_day():
    jan31 = datetime(2028, 1, 31, 9, 0, tzinfo=UTC)
    assert compute_next(jan31, rule(Frequency.MONTHLY)) == datetime(2028, 2, 29, 9, 0, tzinfo=UTC)


def test_monthly_days_of_month_anchor_the_series():
    r = rule(Frequency.MONTHLY, days_of_month=[31])
    jan31 = datetime(2026, 1, 31, 9, 0, tzinfo=UTC)
    feb = compute_next(jan31, r)
    assert feb == datetime(2026, 2, 28, 9, 0, tzinfo=UTC)
    assert compute_next(feb, r) == datetime(2026, 3, 31, 9, 0, tzinfo=UTC)


def test_monthly_days_of_month_within_month():
    r = rule(Frequency.MONTHLY, days_of_month=[1, 15])
    first = datetime(2026, 10, 1, 9, 0, tzinfo=UTC)
    assert compute_next(first, r) == datetime(2026, 10, 15, 9, 0, tzinfo=UTC)
    assert compute_next(datetime(2026, 12, 15, 9, 0, tzinfo=UTC), r) == datetime(2027, 1, 1, 9, 0, tzinfo=UTC)


@pytest.mark.parametrize("times,step", [(4, timedelta(hours=6)), (1440, timedelta(minutes=1))])
def test_custom_times_per_day_spacing(times, step):
    r = rule(Frequency.CUSTOM_TIMES_PER_DAY, times_per_day=times)
    assert compute_next(MONDAY, r) == MONDAY + step


def test_custom_times_per_day_does_not_reset_at_midnight():
    r = rule(Frequency.CUSTOM_TIMES_PER_DAY, times_per_day=3)
    late = datetime(2026, 10, 19, 22, 0, tzinfo=UTC)
    assert compute_next(late, r) == datetime(2026, 10, 20, 6, 0, tzinfo=UTC)


def test_end_date_stops_series():
    r = rule(Frequency.DAILY, end_date=MONDAY + timedelta(hours=12))
    assert compute_next(MONDAY, r) is None


def test_end_date_is_inclusive():
    r = rule(Frequency.DAILY, end_date=MONDAY + timedelta(days=1))
    assert compute_next(MONDAY, r) == MONDAY + timedelta(days=1)


@pytest.mark.parametrize(
    "r",
    [
        RecurrenceRule(frequency=Frequency.DAILY),
        RecurrenceRule(frequency=Frequency.WEEKLY),
        RecurrenceRule(frequency=Frequency.MONTHLY),
        RecurrenceRule(frequency=Frequency.CUSTOM_TIMES_PER_DAY, times_per_day=24),
        RecurrenceRule(frequency=Frequency.CUSTOM_DAYS_OF_WEEK, days_of_week=[0, 1, 2, 3, 4, 5, 6]),
    ],
)
def test_next_is_strictly_later(r):
    assert compute_next(MONDAY, r) > MONDAY


def test_naive_previous_rejected():
    with pytest.raises(ValueError, match="timezone-aware"):
        compute_next(datetime(2026, 10, 19, 9, 0), rule(Frequency.DAILY))


def test_daily_series_keeps_wall_time_through_dst_gap():
    ny = ZoneInfo("America/New_York")
    r = rule(Frequency.DAILY, local_time=time(2, 30))
    at = datetime(2026, 3, 7, 2, 30, tzinfo=ny).astimezone(UTC)

    seen = []
    for _ in range(3):
        # the store hands occurrences back in UTC
        at = compute_next(at, r, tz="America/New_York").astimezone(UTC)
        seen.append(at.astimezone(ny).strftime("%m-%d %H:%M"))

    # 02:30 does not exist on 03-08; only that one occurrence moves
    assert seen == ["03-08 03:30", "03-09 02:30", "03-10 02:30"]


def test_weekly_series_keeps_wall_time_through_dst_gap():
    ny = ZoneInfo("America/New_York")
    # 2026-03-01 is a Sunday
    r = rule(Frequency.WEEKLY, days_of_week=[0], local_time=time(2, 15))
    at = datetime(2026, 3, 1, 2, 15, tzinfo=ny).astimezone(UTC)

    gap = compute_next(at, r, tz="America/New_York").astimezone(UTC)
    after = compute_next(gap, r, tz="America/New_York")

    assert gap.astimezone(ny).strftime("%m-%d %H:%M") == "03-08 03:15"
    assert after.astimezone(ny).strftime("%m-%d %H:%M") == "03-15 02:15"


def test_local_time_ignored_for_times_per_day():
    r = rule(Frequency.CUSTOM_TIMES_PER_DAY, times_per_day=2, local_time=time(7, 0))
    assert compute_next(MONDAY, r) == MONDAY + timedelta(hours=12)
