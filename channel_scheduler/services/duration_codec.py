"""Duration codec - human-readable durations and countdown strings.

Two textual formats are converted to and from integer seconds:

- Durations: "<int>h <int>m" (e.g. "11h 55m"), the nominal run length of a
  channel as typed by operators.
- Countdowns: "HH:MM:SS" (e.g. "11:55:00"), remaining time shown to observers.

All functions are pure. parse_duration never fails its caller: malformed input
falls back to DEFAULT_DURATION_SECONDS with a logged warning. parse_countdown
raises MalformedCountdownError so that a bad countdown never silently becomes
a wrong one.
"""

import re

import structlog

from channel_scheduler.constants import DEFAULT_DURATION_SECONDS
from channel_scheduler.exceptions import MalformedCountdownError, MalformedDurationError

log = structlog.get_logger()

DURATION_PATTERN = re.compile(r"(\d+)h\s*(\d+)m")
COUNTDOWN_PATTERN = re.compile(r"^(\d+):(\d+):(\d+)$")


def parse_duration_strict(text: str | None) -> int:
    """Parse a duration string into seconds.

    Args:
        text: Duration such as "11h 55m" or "0h 2m" (whitespace optional)

    Returns:
        Total seconds (always > 0)

    Raises:
        MalformedDurationError: If the pattern is missing or the total is zero
    """
    if not isinstance(text, str):
        raise MalformedDurationError(text)

    match = DURATION_PATTERN.search(text)
    if not match:
        raise MalformedDurationError(text)

    total = int(match.group(1)) * 3600 + int(match.group(2)) * 60
    if total <= 0:
        raise MalformedDurationError(text)
    return total


def parse_duration(text: str | None) -> int:
    """Parse a duration string, falling back to the default (11h 55m).

    Examples:
        >>> parse_duration("11h 55m")
        42900
        >>> parse_duration("garbage")
        42900
    """
    try:
        return parse_duration_strict(text)
    except MalformedDurationError:
        log.warning(
            "malformed_duration",
            value=text,
            using_default_seconds=DEFAULT_DURATION_SECONDS,
        )
        return DEFAULT_DURATION_SECONDS


def format_duration(seconds: int) -> str:
    """Format seconds as "<h>h <m>m", dropping leftover seconds.

    >>> format_duration(42900)
    '11h 55m'
    """
    seconds = max(0, int(seconds))
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_countdown(seconds: int) -> str:
    """Format seconds as a zero-padded "HH:MM:SS" countdown.

    Negative values are clamped to zero. Hours are padded to two digits but
    not truncated ("123:00:00" for 123 hours).

    >>> format_countdown(42900)
    '11:55:00'
    """
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_countdown(text: str) -> int:
    """Parse a "HH:MM:SS" countdown into seconds.

    Args:
        text: Countdown string; each field an unsigned integer, minutes and
            seconds below 60

    Returns:
        Total seconds

    Raises:
        MalformedCountdownError: If the value is not a well-formed countdown
    """
    if not isinstance(text, str):
        raise MalformedCountdownError(text)

    match = COUNTDOWN_PATTERN.match(text.strip())
    if not match:
        raise MalformedCountdownError(text)

    hours, minutes, seconds = (int(part) for part in match.groups())
    if minutes >= 60 or seconds >= 60:
        raise MalformedCountdownError(text)

    return hours * 3600 + minutes * 60 + seconds


def coerce_countdown(value: object) -> int | None:
    """Read a stored countdown as seconds.

    Integers are returned as-is, "HH:MM:SS" strings (legacy rows) are parsed.

    Raises:
        MalformedCountdownError: For negative numbers or undecodable values
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedCountdownError(value)
    if isinstance(value, int):
        if value < 0:
            raise MalformedCountdownError(value)
        return value
    if isinstance(value, str):
        if value.strip().isdigit():
            return int(value.strip())
        return parse_countdown(value)
    raise MalformedCountdownError(value)
