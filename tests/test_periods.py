"""
Reporting periods.

Covers:
  - parse_period validation (half-open, unparsable, inverted, too long)
  - ISO week keys across the year boundary
  - period multiplier and look-back windows
  - current-date adjustment of forward-looking periods
"""

from datetime import date

import pytest

from app.core.exceptions import ValidationError
from app.services import periods
from app.services.periods import Period


class TestParsePeriod:
    def test_both_missing_is_none(self):
        assert periods.parse_period(None, "") is None

    def test_valid_range(self):
        p = periods.parse_period("2026-03-01", "2026-03-31")
        assert p == Period(date(2026, 3, 1), date(2026, 3, 31))

    def test_half_open_rejected(self):
        with pytest.raises(ValidationError) as exc:
            periods.parse_period("2026-03-01", None)
        assert "end_date" in exc.value.details

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError):
            periods.parse_period("yesterday", "2026-03-01")

    def test_inverted_rejected(self):
        with pytest.raises(ValidationError):
            periods.parse_period("2026-03-31", "2026-03-01")

    def test_too_long_rejected(self):
        with pytest.raises(ValidationError):
            periods.parse_period("2024-01-01", "2026-03-01")


class TestWeekKeys:
    def test_iso_year_boundary(self):
        assert periods.week_key(date(2025, 12, 29)) == "2026-W01"
        assert periods.week_key(date(2021, 1, 3)) == "2020-W53"

    def test_key_round_trip_start(self):
        assert periods.week_start_from_key("2026-W01") == date(2025, 12, 29)

    def test_bad_key(self):
        with pytest.raises(ValueError):
            periods.week_start_from_key("2026-13")

    def test_weeks_in_range_starts_on_monday(self):
        weeks = periods.weeks_in_range(date(2026, 3, 4), date(2026, 3, 17))
        assert [w[1] for w in weeks] == [date(2026, 3, 2), date(2026, 3, 9), date(2026, 3, 16)]
        assert all(w[2].weekday() == 6 for w in weeks)

    def test_current_week(self):
        week = periods.current_week(date(2026, 3, 5))
        assert week == Period(date(2026, 3, 2), date(2026, 3, 8))


class TestMultiplierAndHistory:
    @pytest.mark.parametrize("days,expected", [(0, 1), (3, 1), (7, 1), (10, 1), (11, 2), (30, 4)])
    def test_period_multiplier(self, days, expected):
        start = date(2026, 1, 1)
        end = date.fromordinal(start.toordinal() + days)
        assert periods.period_multiplier(start, end) == expected

    def test_historical_periods(self):
        windows = periods.historical_periods(date(2026, 3, 31), 7)
        assert len(windows) == 7
        assert windows[-1] == Period(date(2026, 3, 25), date(2026, 3, 31))
        assert windows[0].end == date(2026, 2, 17)
        assert all(w.days == 6 for w in windows)

    def test_overlaps_open_ended(self):
        assert periods.overlaps(None, None, date(2026, 1, 1), date(2026, 1, 7))
        assert not periods.overlaps(date(2026, 2, 1), None, date(2026, 1, 1), date(2026, 1, 7))
        assert not periods.overlaps(None, date(2025, 12, 31), date(2026, 1, 1), date(2026, 1, 7))


class TestAdjustForCurrentDate:
    def test_past_weeks_dropped(self):
        today = date(2026, 3, 18)  # Wednesday
        adj = periods.adjust_for_current_date(Period(date(2026, 3, 1), date(2026, 3, 31)), today)
        assert adj.is_forward_looking
        assert adj.period.start == date(2026, 3, 16)
        assert adj.excluded_past_weeks == 2

    def test_past_period_unchanged(self):
        p = Period(date(2026, 1, 1), date(2026, 1, 31))
        adj = periods.adjust_for_current_date(p, date(2026, 3, 18))
        assert adj.period == p
        assert not adj.is_forward_looking

    def test_single_week_unchanged(self):
        p = Period(date(2026, 3, 16), date(2026, 3, 22))
        adj = periods.adjust_for_current_date(p, date(2026, 3, 18))
        assert adj.period == p
