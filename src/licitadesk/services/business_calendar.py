"""
Brazilian business-day calendar used for ticket deadlines.

National holidays are the fixed-date ones plus the Easter-derived
Carnival Monday/Tuesday, Good Friday and Corpus Christi.
"""

from datetime import date, timedelta
from functools import lru_cache
from typing import FrozenSet

FIXED_HOLIDAYS = (
    (1, 1),    # Confraternização Universal
    (4, 21),   # Tiradentes
    (5, 1),    # Dia do Trabalho
    (9, 7),    # Independência
    (10, 12),  # Nossa Senhora Aparecida
    (11, 2),   # Finados
    (11, 15),  # Proclamação da República
    (12, 25),  # Natal
)

# Offsets in days from Easter Sunday
EASTER_OFFSETS = (
    -48,  # Carnival Monday
    -47,  # Carnival Tuesday
    -2,   # Good Friday
    60,   # Corpus Christi
)


def easter_sunday(year: int) -> date:
    """Anonymous Gregorian algorithm (Meeus/Jones/Butcher)."""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


@lru_cache(maxsize=64)
def holidays_for_year(year: int) -> FrozenSet[date]:
    easter = easter_sunday(year)
    fixed = {date(year, month, day) for month, day in FIXED_HOLIDAYS}
    movable = {easter + timedelta(days=offset) for offset in EASTER_OFFSETS}
    return frozenset(fixed | movable)


def is_holiday(day: date) -> bool:
    return day in holidays_for_year(day.year)


def is_business_day(day: date) -> bool:
    return day.weekday() < 5 and not is_holiday(day)


def add_business_days(start: date, days: int) -> date:
    """The date ``days`` business days after ``start`` (start itself excluded)."""
    current = start
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if is_business_day(current):
            remaining -= 1
    return current


def minimum_deadline(today: date, business_days: int = 2) -> date:
    return add_business_days(today, business_days)
