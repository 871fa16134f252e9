"""RFC 3339 timestamp helpers for the admin REST API."""

import re
from datetime import datetime, timezone
from typing import Optional

# The API returns up to nanosecond precision; datetime holds microseconds.
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 3339 timestamp as returned by the API.

    Args:
        value: Timestamp string such as ``2024-01-01T12:00:00.123456789Z``

    Returns:
        Timezone-aware datetime in UTC, or None if value is empty
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = value.replace("Z", "+00:00")
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an RFC 3339 UTC string with microsecond precision."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
