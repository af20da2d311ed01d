"""Display formatting for task timestamps."""

import logging
from datetime import datetime, tzinfo
from typing import Optional

logger = logging.getLogger(__name__)

INVALID_DATE = "Invalid date"


def _parse_timestamp(value: str) -> datetime:
    # Older rows may carry a trailing Z
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def format_task_date(value: Optional[str], tz: Optional[tzinfo] = None) -> str:
    """
    Format an ISO timestamp like ``Oct 6, 2026, 03:04 PM``.

    Args:
        value: ISO-8601 timestamp as stored in the database
        tz: Display timezone, defaults to the local timezone

    Returns:
        Formatted string, "" for empty input, "Invalid date" if unparseable
    """
    if not value:
        return ""
    try:
        dt = _parse_timestamp(value)
    except (TypeError, ValueError) as e:
        logger.error(f"Error formatting date {value!r}: {e}")
        return INVALID_DATE
    dt = dt.astimezone(tz) if tz is not None else dt.astimezone()
    return f"{dt:%b} {dt.day}, {dt:%Y}, {dt:%I:%M %p}"
