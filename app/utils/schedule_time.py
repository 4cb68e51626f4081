# app/utils/schedule_time.py
from __future__ import annotations

import math
from datetime import datetime
from zoneinfo import ZoneInfo

from app.domain.models import INVALID_TIME

__all__ = [
    "MINUTES_PER_DAY",
    "to_minutes",
    "to_seconds",
    "effective_minutes",
    "wall_clock",
    "now_local",
]

MINUTES_PER_DAY = 24 * 60


def to_minutes(text: str | None) -> int:
    """
    Parse "HH:MM:SS" (or "HH:MM") into minutes since midnight.

    Seconds are ignored. Hours are not wrapped: "25:30:00" yields 1530, which
    never matches a same-day effective time. Returns INVALID_TIME (-1) for
    anything that does not parse.
    """
    if not text:
        return INVALID_TIME
    parts = str(text).strip().split(":")
    if len(parts) not in (2, 3):
        return INVALID_TIME
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
        if len(parts) == 3:
            int(parts[2])
    except ValueError:
        return INVALID_TIME
    if hours < 0 or minutes < 0 or minutes > 59:
        return INVALID_TIME
    return hours * 60 + minutes


def effective_minutes(wall_clock_minutes: int, multiplier: float = 1.0) -> int:
    """floor(wall * multiplier) folded into [0, 1440)."""
    scaled = math.floor(wall_clock_minutes * multiplier)
    return int(scaled) % MINUTES_PER_DAY


def wall_clock(now: datetime) -> tuple[int, int]:
    """(minutes since midnight, seconds within the minute) of a local datetime."""
    return now.hour * 60 + now.minute, now.second


def now_local(tz_name: str = "Europe/Zurich") -> datetime:
    return datetime.now(ZoneInfo(tz_name))


def to_seconds(text: str | None) -> int:
    """Like to_minutes but keeps the seconds component. INVALID_TIME on bad input."""
    minutes = to_minutes(text)
    if minutes < 0:
        return INVALID_TIME
    parts = str(text).strip().split(":")
    secs = int(parts[2]) if len(parts) == 3 else 0
    if secs < 0 or secs > 59:
        return INVALID_TIME
    return minutes * 60 + secs
