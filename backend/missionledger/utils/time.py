"""Time Utilities - UTC timestamps and formatting"""
from datetime import datetime, timezone
from typing import Optional
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime, truncated to the millisecond precision BSON stores"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (pymongo returns naive UTC by default)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: Optional[datetime]) -> Optional[str]:
    """
    Format datetime to ISO 8601 string

    Matches the JavaScript ``Date.toISOString`` shape consumed by downstream
    audit tooling: millisecond precision with a ``Z`` suffix.

    Args:
        dt: Datetime object

    Returns:
        ISO formatted string, e.g. ``2026-01-01T09:30:00.000Z``
    """
    if dt is None:
        return None
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to datetime

    Args:
        iso_string: ISO formatted datetime string

    Returns:
        Datetime object in UTC
    """
    return ensure_utc(date_parser.isoparse(iso_string))
