"""Date parsing utilities."""

from datetime import date, timedelta
from typing import Optional
from dateutil import parser as date_parser


def parse_date(date_str: str, dayfirst: bool = False) -> date:
    """Parse a date string into a date object.

    Supports ISO dates, bank-style dates such as "15/01/2024" (with
    ``dayfirst=True``) and the relative words "today", "yesterday" and
    "tomorrow".

    Args:
        date_str: Date string in various formats
        dayfirst: Read ambiguous numeric dates as day/month/year

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        dt = date_parser.parse(date_str, dayfirst=dayfirst)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_optional_date(date_str: Optional[str], dayfirst: bool = False) -> Optional[date]:
    """Parse a date, returning None for an empty value."""
    if date_str is None or not date_str.strip():
        return None
    return parse_date(date_str, dayfirst=dayfirst)
