# app/services/live_trains.py
from __future__ import annotations

import logging
import math
import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime

from app.config import settings
from app.domain.live_models import Position, TrainStats, TrainView, station_from_stop
from app.domain.models import Agency, Route, ScheduleTables, Stop, Trip
from app.services.active_trips import ActiveTrip, iter_active_trips
from app.services.position_interpolator import interpolate, locate_segment
from app.services.schedule_store import ScheduleStore
from app.services.timetable_status import build_timetable
from app.utils.schedule_time import effective_minutes, now_local, wall_clock

log = logging.getLogger("live_trains")

_rng = random.Random()


@dataclass(frozen=True)
class _TripContext:
    trip: Trip
    route: Route
    agency: Agency | None
    stops: list[Stop]  # aligned with the trip's ordered stop-time entries


# -------------------- Helpers --------------------


def pseudo_delay(trip_id: str) -> int:
    """
    Stable 0-6 "delay" per trip: sum of character codes mod 7.

    There is no delay telemetry; this value only keeps the UI populated and
    carries no operational meaning.
    """
    return sum(ord(c) for c in trip_id) % 7


def category_of(name: str) -> str:
    parts = (name or "").split()
    return parts[0] if parts else ""


def _resolve_context(tables: ScheduleTables, active: ActiveTrip) -> _TripContext | None:
    trip = tables.trip(active.trip_id)
    if trip is None:
        log.debug("trip %s: unknown trip_id, skipped", active.trip_id)
        return None

    route = tables.route(trip.route_id)
    if route is None:
        log.debug("trip %s: unknown route %s, skipped", trip.trip_id, trip.route_id)
        return None

    stops: list[Stop] = []
    for entry in active.entries:
        stop = tables.stop(entry.stop_id)
        if stop is None:
            log.debug("trip %s: unknown stop %s, skipped", trip.trip_id, entry.stop_id)
            return None
        stops.append(stop)

    return _TripContext(trip=trip, route=route, agency=tables.agency(route.agency_id), stops=stops)


# -------------------- Assembler --------------------


def build_train_view(
    tables: ScheduleTables,
    active: ActiveTrip,
    eff_minutes: int,
    seconds: int,
    now: datetime,
    rng: random.Random | None = None,
) -> TrainView | None:
    """One TrainView for an active trip, or None when a reference cannot be resolved."""
    ctx = _resolve_context(tables, active)
    if ctx is None:
        return None

    entries = active.entries
    segment = locate_segment(entries, eff_minutes)
    from_stop = ctx.stops[segment.from_index]
    to_stop = ctx.stops[segment.to_index]
    if not (from_stop.has_coordinates and to_stop.has_coordinates):
        log.debug("trip %s: segment stop without coordinates, skipped", active.trip_id)
        return None

    pos = interpolate(segment, from_stop, to_stop, eff_minutes, seconds, rng=rng)
    timetable = build_timetable(entries, ctx.stops, eff_minutes, seconds)

    # midpoint rule for the UI, not a physical state
    anchor = from_stop if pos.progress < 0.5 else to_stop

    name = (ctx.route.short_name or "").strip() or settings.DEFAULT_TRAIN_NAME
    operator = ctx.agency.name if ctx.agency else settings.DEFAULT_OPERATOR

    return TrainView(
        id=active.trip_id,
        name=name,
        category=category_of(name),
        number=active.trip_id,
        operator=operator,
        origin=ctx.stops[0].name,
        destination=ctx.stops[-1].name,
        position=Position(lat=pos.lat, lng=pos.lon),
        current_station=station_from_stop(anchor),
        delay=pseudo_delay(active.trip_id),
        cancelled=False,
        speed=pos.speed_kmh,
        direction=pos.bearing,
        last_update=now.isoformat(timespec="seconds"),
        departure_time=entries[0].departure_time,
        arrival_time=entries[-1].arrival_time,
        timetable=timetable,
    )


def get_live_trains(
    store: ScheduleStore,
    multiplier: float = 1.0,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
    limit: int | None = None,
) -> list[TrainView]:
    """
    Interpolated positions of every running trip at `now` (Swiss local time by
    default), with the clock scaled by `multiplier`.

    Always returns a list: an unloaded store, an empty schedule or unresolvable
    trips simply produce fewer (or no) trains.
    """
    if not store.is_loaded():
        return []

    now = now or now_local(settings.TIMEZONE)
    rng = rng or _rng
    cap = settings.MAX_LIVE_TRAINS if limit is None else limit

    wall_minutes, seconds = wall_clock(now)
    if not (math.isfinite(multiplier) and math.isfinite(wall_minutes * multiplier)):
        log.warning("live_trains: unusable multiplier %r, using 1.0", multiplier)
        multiplier = 1.0
    eff = effective_minutes(wall_minutes, multiplier)

    trains: list[TrainView] = []
    with store.reading() as tables:
        for active in iter_active_trips(tables, eff):
            if len(trains) >= cap:
                break
            try:
                view = build_train_view(tables, active, eff, seconds, now, rng)
            except Exception:
                log.exception("live_trains: trip %s failed, skipped", active.trip_id)
                continue
            if view is not None:
                trains.append(view)

    trains.sort(key=lambda t: t.name)
    return trains


# -------------------- Filters & stats --------------------


def filter_trains(
    trains: list[TrainView],
    category: str | None = None,
    operator: str | None = None,
    delayed_only: bool = False,
    limit: int | None = None,
) -> list[TrainView]:
    cat = (category or "").strip().lower()
    op = (operator or "").strip().lower()

    out = []
    for t in trains:
        if cat and t.category.lower() != cat:
            continue
        if op and t.operator.lower() != op:
            continue
        if delayed_only and t.delay <= 0:
            continue
        out.append(t)

    if limit is not None and 0 < limit < len(out):
        out = out[:limit]
    return out


def find_train(trains: list[TrainView], train_id: str) -> TrainView | None:
    for t in trains:
        if t.id == train_id:
            return t
    return None


def compute_train_stats(trains: list[TrainView]) -> TrainStats:
    if not trains:
        return TrainStats()

    delayed = sum(1 for t in trains if t.delay > 0)
    return TrainStats(
        total=len(trains),
        by_category=dict(Counter(t.category for t in trains)),
        by_operator=dict(Counter(t.operator for t in trains)),
        delayed=delayed,
        on_time=len(trains) - delayed,
        cancelled=sum(1 for t in trains if t.cancelled),
        average_delay=sum(t.delay for t in trains) / len(trains),
        average_speed=sum(t.speed for t in trains) / len(trains),
    )
