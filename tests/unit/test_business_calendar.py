"""
Unit tests for the business-day calendar.
"""

from datetime import date

import pytest

from licitadesk.services.business_calendar import (
    add_business_days,
    easter_sunday,
    holidays_for_year,
    is_business_day,
    is_holiday,
    minimum_deadline,
)


class TestEaster:
    @pytest.mark.parametrize(
        "year,expected",
        [
            (2024, date(2024, 3, 31)),
            (2025, date(2025, 4, 20)),
            (2026, date(2026, 4, 5)),
        ],
    )
    def test_known_dates(self, year, expected):
        assert easter_sunday(year) == expected


class TestHolidays:
    def test_movable_holidays_2024(self):
        holidays = holidays_for_year(2024)
        assert date(2024, 2, 12) in holidays  # Carnival Monday
        assert date(2024, 2, 13) in holidays  # Carnival Tuesday
        assert date(2024, 3, 29) in holidays  # Good Friday
        assert date(2024, 5, 30) in holidays  # Corpus Christi

    def test_fixed_holidays(self):
        assert is_holiday(date(2025, 4, 21))
        assert is_holiday(date(2025, 11, 15))
        assert not is_holiday(date(2025, 11, 14))

    def test_weekends_are_not_business_days(self):
        assert not is_business_day(date(2025, 6, 28))
        assert not is_business_day(date(2025, 6, 29))
        assert is_business_day(date(2025, 6, 30))


class TestDeadlines:
    def test_plain_week(self):
        assert add_business_days(date(2024, 3, 4), 2) == date(2024, 3, 6)

    def test_start_day_is_excluded(self):
        assert add_business_days(date(2024, 3, 4), 0) == date(2024, 3, 4)

    def test_skips_carnival(self):
        """Friday before Carnival: Monday and Tuesday do not count."""
        assert minimum_deadline(date(2024, 2, 9)) == date(2024, 2, 15)

    def test_skips_good_friday_and_weekend(self):
        assert minimum_deadline(date(2024, 3, 28)) == date(2024, 4, 2)
