"""Time Utilities for UTC management"""

from datetime import date, datetime, timezone


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the DB schema (TIMESTAMP WITHOUT TIME ZONE).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_utc_today() -> date:
    return get_utc_now().date()
