# app/services/active_trips.py
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from itertools import islice

from app.config import settings
from app.domain.models import ScheduleTables, StopTimeEntry


@dataclass(frozen=True)
class ActiveTrip:
    trip_id: str
    entries: list[StopTimeEntry]  # ordered by stop_sequence
    start_minutes: int  # first departure
    end_minutes: int  # last arrival


def service_window(entries: list[StopTimeEntry]) -> tuple[int, int] | None:
    """
    (first departure, last arrival) of an ordered trip, or None when either
    boundary time is missing or malformed.
    """
    if len(entries) < 2:
        return None
    start = entries[0].departure_minutes
    end = entries[-1].arrival_minutes
    if start < 0 or end < 0:
        return None
    return start, end


def iter_active_trips(tables: ScheduleTables, effective_minutes: int) -> Iterator[ActiveTrip]:
    """Trips whose [first departure, last arrival] contains the effective time, lazily."""
    for trip_id, entries in tables.stop_times_by_trip.items():
        window = service_window(entries)
        if window is None:
            continue
        start, end = window
        if start <= effective_minutes <= end:
            yield ActiveTrip(trip_id=trip_id, entries=entries, start_minutes=start, end_minutes=end)


def select_active_trips(
    tables: ScheduleTables, effective_minutes: int, limit: int | None = None
) -> list[ActiveTrip]:
    """
    Active trips in stop_times order, capped at `limit` (MAX_LIVE_TRAINS by default).

    The cap bounds response cost only; which trips survive it depends on feed
    order, not on any priority. get_live_trains does not use this: it caps
    after assembly so that unresolvable trips do not take a slot.
    """
    cap = settings.MAX_LIVE_TRAINS if limit is None else limit
    return list(islice(iter_active_trips(tables, effective_minutes), max(cap, 0)))
