"""Time-of-day parsing and delivery window checks."""

from __future__ import annotations

import re
from typing import Optional

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
_MERIDIEM_PATTERN = re.compile(r"^(\d{1,2})\s*(AM|PM)$", re.IGNORECASE)


def parse_time_to_minutes(value: Optional[str]) -> Optional[int]:
    """Convert ``"HH:MM"`` or ``"7AM"``/``"11PM"`` into minutes after midnight."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    match = _CLOCK_PATTERN.match(text)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))
    match = _MERIDIEM_PATTERN.match(text)
    if match:
        hours = int(match.group(1))
        meridiem = match.group(2).upper()
        if hours == 12:
            hours = 0 if meridiem == "AM" else 12
        elif meridiem == "PM":
            hours += 12
        return hours * 60
    return None


def is_restricted_window(window: Optional[str]) -> bool:
    return bool(window and window.strip() and window.strip().upper() != "N/A")


def is_time_in_window(time_label: str, window: Optional[str]) -> bool:
    """Return True when ``time_label`` falls inside ``window``.

    Windows crossing midnight (``"22:00-04:00"``) wrap around. Windows or labels
    that cannot be parsed impose no restriction.
    """
    if not is_restricted_window(window):
        return True
    parts = window.split("-")
    if len(parts) != 2:
        return True
    route_time = parse_time_to_minutes(time_label)
    start = parse_time_to_minutes(parts[0].strip())
    end = parse_time_to_minutes(parts[1].strip())
    if route_time is None or start is None or end is None:
        return True
    if start <= end:
        return start <= route_time <= end
    return route_time >= start or route_time <= end


def is_night_departure(time_label: str, night_window: tuple[str, str]) -> bool:
    """Departures inside the night window use night equipment restrictions.

    Labels that cannot be parsed count as midnight.
    """
    minutes = parse_time_to_minutes(time_label) or 0
    start = parse_time_to_minutes(night_window[0])
    end = parse_time_to_minutes(night_window[1])
    if start is None or end is None:
        return False
    if start <= end:
        return start <= minutes < end
    return minutes >= start or minutes < end
