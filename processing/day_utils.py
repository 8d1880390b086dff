"""
Day-of-year utilities for the receiver archive layout.

Raw files are bucketed by calendar year and day-of-year, so stepping
across midnight has to handle year rollover and leap years.
"""

from typing import Tuple


def is_leap_year(year: int) -> bool:
    """Gregorian leap year test."""
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_year(year: int) -> int:
    return 366 if is_leap_year(year) else 365


def previous_day(year: int, doy: int) -> Tuple[int, int]:
    """
    Get the (year, day-of-year) before the given day.

    Args:
        year: Calendar year
        doy: Day of year (1-based)

    Returns:
        Tuple of (year, doy) for the previous day
    """
    if doy == 1:
        return year - 1, days_in_year(year - 1)
    return year, doy - 1


def next_day(year: int, doy: int) -> Tuple[int, int]:
    """
    Get the (year, day-of-year) after the given day.

    Args:
        year: Calendar year
        doy: Day of year (1-based)

    Returns:
        Tuple of (year, doy) for the next day
    """
    if doy == days_in_year(year):
        return year + 1, 1
    return year, doy + 1


def format_doy(doy: int) -> str:
    """Zero-pad a day-of-year the way the archive directories are named."""
    return f"{doy:03d}"
