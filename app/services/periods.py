"""
Reporting periods — parsing, ISO week keys, overlap and look-back windows.

Week keys use the ISO calendar (``date.isocalendar()``), so the last days
of December can belong to week 1 of the following year: "2026-W01"
starts on Monday 2025-12-29.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta

from app.core.exceptions import ValidationError
from app.utils.helpers import parse_date

MAX_PERIOD_DAYS = 730


@dataclass(frozen=True)
class Period:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    def to_dict(self) -> dict:
        return {"start_date": self.start.isoformat(), "end_date": self.end.isoformat()}


@dataclass(frozen=True)
class PeriodAdjustment:
    period: Period
    original: Period
    is_forward_looking: bool
    excluded_past_weeks: int

    def to_dict(self) -> dict:
        return {
            "start_date": self.period.start.isoformat(),
            "end_date": self.period.end.isoformat(),
            "original_start_date": self.original.start.isoformat(),
            "is_forward_looking": self.is_forward_looking,
            "excluded_past_weeks": self.excluded_past_weeks,
        }


def parse_period(start_raw, end_raw) -> Period | None:
    """Build a Period from two raw query/body values.

    Both missing → None (caller uses its default).
    Raises ValidationError for a half-open, unparsable, inverted or
    over-long (> 730 days) range.
    """
    if not start_raw and not end_raw:
        return None

    errors = {}
    if not start_raw:
        errors["start_date"] = "start_date is required when end_date is given"
    if not end_raw:
        errors["end_date"] = "end_date is required when start_date is given"
    start = parse_date(start_raw) if start_raw else None
    end = parse_date(end_raw) if end_raw else None
    if start_raw and start is None:
        errors["start_date"] = "Invalid date. Use YYYY-MM-DD."
    if end_raw and end is None:
        errors["end_date"] = "Invalid date. Use YYYY-MM-DD."
    if errors:
        raise ValidationError("Invalid period", details=errors)

    if start > end:
        raise ValidationError(
            "start_date must not be after end_date",
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
    if (end - start).days > MAX_PERIOD_DAYS:
        raise ValidationError(
            f"Period may not exceed {MAX_PERIOD_DAYS} days",
            details={"days": (end - start).days},
        )
    return Period(start, end)


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_key(day: date) -> str:
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def week_start_from_key(key: str) -> date:
    """Monday of an ISO week key; raises ValueError for malformed keys."""
    try:
        year_part, week_part = key.split("-W")
        return date.fromisocalendar(int(year_part), int(week_part), 1)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid ISO week key {key!r}; expected YYYY-Www") from exc


def weeks_in_range(start: date, end: date) -> list[tuple[str, date, date]]:
    """(key, monday, sunday) for every week from start's week through end."""
    weeks = []
    current = monday_of(start)
    while current <= end:
        weeks.append((week_key(current), current, current + timedelta(days=6)))
        current += timedelta(days=7)
    return weeks


def week_keys_in_range(start: date, end: date) -> list[str]:
    return [key for key, _, _ in weeks_in_range(start, end)]


def current_week(today: date | None = None) -> Period:
    today = today or date.today()
    monday = monday_of(today)
    return Period(monday, monday + timedelta(days=6))


def overlaps(item_start, item_end, start: date, end: date) -> bool:
    """True when [item_start, item_end] intersects [start, end]; None is open-ended."""
    if item_start is not None and item_start > end:
        return False
    if item_end is not None and item_end < start:
        return False
    return True


def period_multiplier(start: date, end: date) -> int:
    """Number of weeks a period stands for: round half up of days / 7, at least 1."""
    weeks = (end - start).days / 7
    return max(1, int(math.floor(weeks + 0.5)))


def historical_periods(end: date, count: int = 7) -> list[Period]:
    """``count`` consecutive 7-day windows ending at ``end``, oldest first."""
    windows = []
    for i in range(count - 1, -1, -1):
        window_end = end - timedelta(days=7 * i)
        windows.append(Period(window_end - timedelta(days=6), window_end))
    return windows


def adjust_for_current_date(period: Period, today: date | None = None) -> PeriodAdjustment:
    """Drop whole past weeks from a multi-week period that contains today.

    Forward-looking views (this month, this quarter) should not be dragged
    down by weeks that are already over, so the start moves to the current
    Monday.
    """
    today = today or date.today()
    this_monday = monday_of(today)
    contains_today = period.start <= today <= period.end
    multi_week = period.days > 7
    if contains_today and multi_week and period.start < this_monday:
        excluded = (this_monday - period.start).days // 7
        return PeriodAdjustment(
            period=Period(this_monday, period.end),
            original=period,
            is_forward_looking=True,
            excluded_past_weeks=excluded,
        )
    return PeriodAdjustment(
        period=period, original=period, is_forward_looking=False, excluded_past_weeks=0,
    )
