"""
Date Utilities

Converts the timestamp shapes stored alongside valuations (epoch
milliseconds, {"seconds": ...} maps, ISO strings, datetimes) and formats
them for display.
"""

import re
from datetime import datetime
from typing import Any, Optional

from tasador.logging_config import get_logger

logger = get_logger(__name__)

SPANISH_MONTHS = [
    "ene", "feb", "mar", "abr", "may", "jun",
    "jul", "ago", "sep", "oct", "nov", "dic",
]

# Anything above this is treated as milliseconds since the epoch
_MILLIS_THRESHOLD = 10_000_000_000


def now_millis() -> int:
    """Current time as epoch milliseconds (the stored `date` format)."""
    return int(datetime.now().timestamp() * 1000)


def to_datetime(timestamp: Any) -> Optional[datetime]:
    """Convert a stored timestamp into a datetime.

    Handles:
    - datetime objects (returned unchanged)
    - epoch milliseconds or seconds (int/float)
    - {"seconds": ..., "nanoseconds": ...} maps
    - ISO strings: 2024-01-15, 2024-01-15T10:30:00

    Returns:
        datetime, or None when the value is empty or unparseable.

    Example:
        >>> to_datetime(1705276800000).year
        2024
    """
    if timestamp is None or timestamp == "":
        return None

    if isinstance(timestamp, datetime):
        return timestamp

    if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
        seconds = timestamp / 1000 if abs(timestamp) >= _MILLIS_THRESHOLD else timestamp
        return datetime.fromtimestamp(seconds)

    if isinstance(timestamp, dict) and "seconds" in timestamp:
        return datetime.fromtimestamp(timestamp["seconds"])

    text = str(timestamp).strip()
    if re.match(r"^\d{4}-\d{2}-\d{2}", text):
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            pass

    logger.debug("Could not parse timestamp: %s", timestamp)
    return None


def format_date(timestamp: Any) -> str:
    """Format a stored timestamp as '15 ene 2024'.

    Returns:
        Formatted date, or 'N/A' when the timestamp is empty or unparseable.
    """
    value = to_datetime(timestamp)
    if value is None:
        return "N/A"
    return f"{value.day:02d} {SPANISH_MONTHS[value.month - 1]} {value.year}"


def format_short_date(timestamp: Any) -> str:
    """Format a stored timestamp as dd/mm/yyyy (used in valuation names)."""
    value = to_datetime(timestamp)
    if value is None:
        return "N/A"
    return value.strftime("%d/%m/%Y")
