"""Next-occurrence computation for recurring reminders.

Calendar steps (days, weeks, months, weekday matching) are taken on the
reminder's local wall clock so "every day at 9:00" stays at 9:00 across DST
changes. When the rule carries ``local_time`` every calendar step lands on it,
so an occurrence pushed forward by a DST gap does not shift the rest of the
series. ``custom_times_per_day`` is a fixed elapsed interval instead.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.types.reminder_contract import Frequency, RecurrenceRule, sunday_weekday


def _zone(tz: str | ZoneInfo | None) -> ZoneInfo:
    if tz is None:
        return ZoneInfo("UTC")
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def _on_day(local: datetime, day: date) -> datetime:
    """``local``'s wall-clock time on another calendar day."""
    return local.replace(year=day.year, month=day.month, day=day.day, fold=0)


def _add_months(local: datetime, months: int) -> datetime:
    month_index = local.month - 1 + months
    year = local.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return local.replace(year=year, month=month, day=min(local.day, last_day), fold=0)


def _next_weekday(local: datetime, days_of_week: list[int]) -> datetime:
    wanted = set(days_of_week)
    for offset in range(1, 8):
        candidate = _on_day(local, local.date() + timedelta(days=offset))
        if sunday_weekday(candidate) in wanted:
            return candidate
    raise ValueError("days_of_week must not be empty")


def _next_month_day(local: datetime, days_of_month: list[int]) -> datetime:
    # Scanning this month and the next always finds a match: every month has
    # day 1..28, and larger days clamp to the month's last day.
    for months_ahead in range(0, 3):
        first = _add_months(local.replace(day=1), months_ahead)
        last_day = calendar.monthrange(first.year, first.month)[1]
        for day in sorted({min(d, last_day) for d in days_of_month}):
            candidate = first.replace(day=day)
            if candidate.date() > local.date():
                return candidate
    raise ValueError("days_of_month must not be empty")


def _at_series_time(local: datetime, rule: RecurrenceRule) -> datetime:
    """Move a calendar step onto the series' own wall-clock time, if it has one."""
    if rule.local_time is None:
        return local
    t = rule.local_time
    return local.replace(hour=t.hour, minute=t.minute, second=t.second, microsecond=t.microsecond, fold=0)


def compute_next(
    previous: datetime,
    rule: RecurrenceRule,
    tz: str | ZoneInfo | None = "UTC",
) -> datetime | None:
    """Return the occurrence after ``previous`` or ``None`` past ``rule.end_date``.

    The result carries ``previous``'s tzinfo and is always strictly later
    than ``previous``.
    """
    if previous.tzinfo is None or previous.utcoffset() is None:
        raise ValueError("previous occurrence must be timezone-aware")

    zone = _zone(tz)
    local = previous.astimezone(zone)
    freq = rule.frequency

    if freq == Frequency.DAILY:
        nxt = _on_day(local, local.date() + timedelta(days=1))
    elif freq in (Frequency.WEEKLY, Frequency.CUSTOM_DAYS_OF_WEEK):
        if rule.days_of_week:
            nxt = _next_weekday(local, rule.days_of_week)
        elif freq == Frequency.WEEKLY:
            nxt = _on_day(local, local.date() + timedelta(days=7))
        else:
            raise ValueError("custom_days_of_week requires days_of_week")
    elif freq == Frequency.MONTHLY:
        if rule.days_of_month:
            nxt = _next_month_day(local, rule.days_of_month)
        else:
            nxt = _add_months(local, 1)
    elif freq == Frequency.CUSTOM_TIMES_PER_DAY:
        if not rule.times_per_day or rule.times_per_day < 1:
            raise ValueError("custom_times_per_day requires times_per_day >= 1")
        step = timedelta(days=1) / rule.times_per_day
        nxt = (previous.astimezone(timezone.utc) + step).astimezone(zone)
    else:  # pragma: no cover
        raise ValueError(f"unsupported frequency {freq!r}")

    if freq != Frequency.CUSTOM_TIMES_PER_DAY:
        nxt = _at_series_time(nxt, rule)

    result = nxt.astimezone(previous.tzinfo)
    if rule.end_date is not None and result > rule.end_date:
        return None
    return result
