"""Wall-clock helpers in the deployment timezone."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from turnero.config import get_settings


def local_now() -> datetime:
    """Current time in the configured timezone, as a naive datetime.

    Appointment times are stored naive and interpreted in the same zone.
    """
    return datetime.now(ZoneInfo(get_settings().timezone)).replace(tzinfo=None)


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(get_settings().timezone)).replace(tzinfo=None)


def utcnow_naive() -> datetime:
    """Current UTC time without tzinfo, for audit timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
