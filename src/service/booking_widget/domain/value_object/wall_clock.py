"""
Wall-clock time helpers.

Schedules and slots carry local wall-clock strings ("10:00 AM", "18:30"),
never absolute instants. Internally a wall-clock time is minutes since
midnight.
"""

import re
from typing import Optional

from src.platform.exception.exceptions import ValidationError


MINUTES_PER_DAY = 24 * 60

_WALL_CLOCK_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})\s*(AM|PM)?$', re.IGNORECASE)


def parse_wall_clock(value: object) -> Optional[int]:
    """'10:00 AM' / '6:30 pm' / '18:30' → minutes since midnight, None if unparseable"""
    if not isinstance(value, str):
        return None
    match = _WALL_CLOCK_PATTERN.match(value.strip())
    if not match:
        return None

    hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3)
    if minutes > 59:
        return None
    if period:
        if not 1 <= hours <= 12:
            return None
        if period.upper() == 'PM' and hours != 12:
            hours += 12
        elif period.upper() == 'AM' and hours == 12:
            hours = 0
    elif hours > 23:
        return None
    return hours * 60 + minutes


def format_12h(minutes: int) -> str:
    hours, mins = divmod(minutes % MINUTES_PER_DAY, 60)
    period = 'PM' if hours >= 12 else 'AM'
    return f'{hours % 12 or 12}:{mins:02d} {period}'


def format_24h(minutes: int) -> str:
    hours, mins = divmod(minutes % MINUTES_PER_DAY, 60)
    return f'{hours:02d}:{mins:02d}'


def same_wall_clock(a: object, b: object) -> bool:
    """Compare two time strings regardless of 12h/24h rendering"""
    parsed_a, parsed_b = parse_wall_clock(a), parse_wall_clock(b)
    if parsed_a is None or parsed_b is None:
        return a == b
    return parsed_a == parsed_b


def normalize_time_window(time: str, duration_minutes: int) -> tuple[str, str]:
    """
    Convert a displayed slot time into the 24h start/end pair sent to the backend

    End wraps past midnight ("23:30" + 60 → "00:30").

    Raises:
        ValidationError: time cannot be parsed
    """
    start = parse_wall_clock(time)
    if start is None:
        raise ValidationError(f'Invalid time format: {time!r}', {'time': 'Invalid time format'})
    return format_24h(start), format_24h(start + max(0, duration_minutes))
