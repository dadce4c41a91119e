"""Shared parsing helpers for services and blueprints.

parse_date:        lenient — returns None on bad input (query strings)
parse_date_input:  strict — raises ValueError on bad input (payload validation)
"""
from datetime import date, datetime


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    try:
        return parse_date_input(value)
    except ValueError:
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same formats as parse_date(); empty input returns None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Invalid date value. Use YYYY-MM-DD or DD.MM.YYYY.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc
