"""
DateTime utility functions for the application.
"""
import time
from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def now_ms():
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def from_epoch_ms(value):
    """
    Convert epoch milliseconds to an aware UTC datetime.

    Args:
        value: epoch milliseconds (int/float), or None

    Returns:
        datetime in UTC, or None if value is None
    """
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def format_crm_datetime(value):
    """
    Format an order timestamp the way KeyCRM expects it.
    Returns format like: "2025-10-15 14:30:45" (UTC)

    Args:
        value: epoch milliseconds, datetime object, or None

    Returns:
        str: Formatted datetime string, or None if value is None
    """
    if value is None:
        return None

    dt = from_epoch_ms(value) if isinstance(value, (int, float)) else value

    # If dt is naive (no timezone), assume it's UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def format_iso_utc(value):
    """Epoch milliseconds to an ISO-8601 UTC string, e.g. for communicate_at."""
    dt = from_epoch_ms(value)
    return dt.isoformat().replace("+00:00", "Z") if dt else None


def format_datetime_kyiv(value):
    """
    Format an order timestamp in Kyiv time for manager-facing text.
    Returns format like: "15.10.2025, 17:30:45"

    Args:
        value: epoch milliseconds, datetime object, or None

    Returns:
        str: Formatted datetime string in Kyiv time, or None if value is None
    """
    if value is None:
        return None

    dt = from_epoch_ms(value) if isinstance(value, (int, float)) else value

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(get_kyiv_timezone()).strftime("%d.%m.%Y, %H:%M:%S")


def get_kyiv_timezone():
    """
    Get the Kyiv timezone object.

    Returns:
        ZoneInfo: Europe/Kyiv timezone object
    """
    return ZoneInfo("Europe/Kyiv")
