"""Time offset parsing for spreadsheet cells."""

import re
from typing import Any, Optional

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int_prefix(value: Any, default: int) -> int:
    """
    Parse the leading integer of a cell value ("80%" -> 80, "12.7" -> 12).

    Args:
        value: Raw cell value (str, int, float or None)
        default: Returned when no leading integer is present

    Returns:
        Parsed integer or default
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    if not match:
        return default
    return int(match.group(1))


def parse_time_to_seconds(value: Optional[Any]) -> int:
    """
    Convert an ``SS``, ``MM:SS`` or ``HH:MM:SS`` offset to integer seconds.

    Empty, missing or unparseable values yield 0.

    Examples:
        "1:30" -> 90, "1:02:03" -> 3723, "45" -> 45, "" -> 0
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)

    text = str(value).strip()
    if not text:
        return 0

    parts = [part.strip() for part in text.split(":")]
    if len(parts) == 1:
        seconds = parse_int_prefix(parts[0], default=0)
        return max(seconds, 0)
    if len(parts) > 3 or not all(part.isdigit() for part in parts):
        return 0

    seconds = 0
    for part in parts:
        seconds = seconds * 60 + int(part)
    return seconds
