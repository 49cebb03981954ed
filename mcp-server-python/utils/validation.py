"""
Validation constants and timestamp helpers shared by the pipeline tools.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from models.errors import create_validation_error

# Column reader page bounds
DEFAULT_LIMIT = 20
MIN_LIMIT = 1
MAX_LIMIT = 200

MAX_REASON_LENGTH = 2000
MAX_COMMENT_LENGTH = 4000


def format_utc_timestamp(value: datetime) -> str:
    """
    Format a datetime as ISO 8601 UTC with millisecond precision.

    Example: 2026-02-04T03:47:36.966Z

    Every timestamp the server stores uses this format, so stored values
    sort lexicographically in time order.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_current_utc_timestamp() -> str:
    """
    Generate a UTC timestamp in ISO 8601 format with millisecond precision.

    Returns:
        ISO 8601 UTC timestamp string with millisecond precision and Z suffix
    """
    return format_utc_timestamp(datetime.now(timezone.utc))


def parse_utc_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z``; naive values are taken as UTC.

    Raises:
        ToolError: If the value is not a valid ISO 8601 timestamp
    """
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise create_validation_error(f"Invalid timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_timestamp(value: Optional[str]) -> Optional[str]:
    """Re-format a caller-supplied timestamp into the stored format (None passes through)."""
    if value is None:
        return None
    return format_utc_timestamp(parse_utc_timestamp(value))


def normalize_window_end(value: Optional[str]) -> Optional[str]:
    """
    Normalize an inclusive upper bound of a ``changed_at`` window.

    A bare date (``2026-01-06``) covers that whole day and becomes
    ``2026-01-06T23:59:59.999Z``; full timestamps are normalized as-is.
    """
    if value is None:
        return None
    try:
        day = date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return normalize_timestamp(value)
    return format_utc_timestamp(datetime.combine(day, time(23, 59, 59, 999000), tzinfo=timezone.utc))


def days_between(start: str, end: str) -> int:
    """
    Whole days elapsed from ``start`` to ``end`` (never negative).

    Args:
        start: ISO 8601 timestamp
        end: ISO 8601 timestamp

    Returns:
        Number of complete days between the two instants
    """
    delta = parse_utc_timestamp(end) - parse_utc_timestamp(start)
    return max(delta.days, 0)
