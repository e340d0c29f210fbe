"""Date parsing utilities."""

from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

PERIODS = (
    "this-month",
    "this-quarter",
    "this-year",
    "last-month",
    "last-quarter",
    "last-year",
)


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2026-02-10", "February 10, 2026", etc.
    - Relative dates: "today", "yesterday", "last month", "this year", etc.

    Args:
        date_str: Date string in various formats
        today: Reference date for relative dates (defaults to the current date)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    if date_str.startswith("last "):
        period = date_str[5:]
        if period == "month":
            return (today - relativedelta(months=1)).replace(day=1)
        elif period == "quarter":
            return quarter_start(today) - relativedelta(months=3)
        elif period == "year":
            return today.replace(month=1, day=1) - relativedelta(years=1)

    elif date_str.startswith("this "):
        period = date_str[5:]
        if period == "month":
            return today.replace(day=1)
        elif period == "quarter":
            return quarter_start(today)
        elif period == "year":
            return today.replace(month=1, day=1)

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


def quarter_start(day: date) -> date:
    """Return the first day of the calendar quarter containing ``day``."""
    return day.replace(month=3 * ((day.month - 1) // 3) + 1, day=1)


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a specified period.

    "this-" periods end today; "last-" periods cover the whole previous
    calendar month, quarter or year.

    Args:
        period: One of PERIODS
        today: Reference date (defaults to the current date)

    Returns:
        Tuple of (start_date, end_date) for the specified period

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower().replace("_", "-")
    today = today or date.today()

    if period == "this-month":
        return (today.replace(day=1), today)

    elif period == "this-quarter":
        return (quarter_start(today), today)

    elif period == "this-year":
        return (today.replace(month=1, day=1), today)

    elif period == "last-month":
        end_date = today.replace(day=1) - timedelta(days=1)
        return (end_date.replace(day=1), end_date)

    elif period == "last-quarter":
        end_date = quarter_start(today) - timedelta(days=1)
        return (quarter_start(end_date), end_date)

    elif period == "last-year":
        start_date = today.replace(month=1, day=1) - relativedelta(years=1)
        return (start_date, start_date.replace(month=12, day=31))

    raise ValueError(
        f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}"
    )
