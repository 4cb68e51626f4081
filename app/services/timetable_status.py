# app/services/timetable_status.py
from __future__ import annotations

from app.domain.live_models import TimetableEntry, station_from_stop
from app.domain.models import Stop, StopTimeEntry


def platform_placeholder(index: int) -> str:
    return str((index % 10) + 1)


def stop_status(entry: StopTimeEntry, effective_seconds: int) -> tuple[bool, bool]:
    """(passed, dwelling) for one stop at the given effective time of day."""
    dep = entry.resolved_departure
    arr = entry.resolved_arrival
    if dep < 0:
        return False, False
    dep_s = dep * 60
    if effective_seconds > dep_s:
        return True, False
    arr_s = arr * 60
    return False, arr_s <= effective_seconds <= dep_s


def build_timetable(
    entries: list[StopTimeEntry],
    stops: list[Stop],
    effective_minutes: int,
    seconds: int = 0,
) -> list[TimetableEntry]:
    """
    Timetable rows with passed/current flags. At most one row is current: the
    first dwelling stop, or else the first stop not yet passed.
    """
    effective_seconds = effective_minutes * 60 + seconds
    rows: list[TimetableEntry] = []
    has_current = False

    for i, (entry, stop) in enumerate(zip(entries, stops, strict=True)):
        passed, dwelling = stop_status(entry, effective_seconds)
        current = dwelling and not has_current
        has_current = has_current or current
        rows.append(
            TimetableEntry(
                station=station_from_stop(stop),
                arrival_time=entry.arrival_time,
                departure_time=entry.departure_time,
                platform=platform_placeholder(i),
                is_current_station=current,
                is_passed=passed,
                is_skipped=False,
            )
        )

    if not has_current:
        for row in rows:
            if not row.is_passed:
                row.is_current_station = True
                break

    return rows
