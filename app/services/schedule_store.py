# app/services/schedule_store.py
from __future__ import annotations

import csv
import logging
import os
import threading
import time
import unicodedata
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from app.config import settings
from app.domain.live_models import (
    Departure,
    ScheduleStats,
    Station,
    StationDepartures,
    station_from_stop,
)
from app.domain.models import (
    Agency,
    CalendarEntry,
    Route,
    ScheduleTables,
    Stop,
    StopTimeEntry,
    Trip,
)
from app.utils.schedule_time import now_local, to_minutes, to_seconds

log = logging.getLogger("schedule_store")

GTFS_FILES = (
    "agency.txt",
    "stops.txt",
    "routes.txt",
    "trips.txt",
    "stop_times.txt",
    "calendar.txt",
)

# A file that exists but lacks these columns is malformed.
REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "stops.txt": ("stop_id",),
    "routes.txt": ("route_id",),
    "trips.txt": ("trip_id", "route_id"),
    "stop_times.txt": ("trip_id", "stop_id"),
    "calendar.txt": ("service_id",),
}

MAX_DEPARTURES = 20

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ScheduleLoadError(RuntimeError):
    """A GTFS file could not be read or has a malformed header."""


# -------------------- Locking --------------------


class ReadWriteLock:
    """Many readers or one writer. Writers wait for active readers to drain."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


# -------------------- CSV --------------------


def _norm_row(headers: list[str], record: list[str]) -> dict[str, str]:
    out = {}
    for i, value in enumerate(record):
        if i < len(headers):
            out[headers[i]] = (value or "").strip()
    return out


def read_gtfs_file(path: Path) -> list[dict[str, str]]:
    """
    Read one GTFS table as a list of dict rows.

    A missing file is an empty table. Unreadable files, an absent header or a
    header without the key columns raise ScheduleLoadError. Broken lines are
    skipped with a warning.
    """
    enc = getattr(settings, "GTFS_ENCODING", None) or "utf-8-sig"
    delim = getattr(settings, "GTFS_DELIMITER", None) or ","

    try:
        fh = path.open("r", encoding=enc, newline="")
    except FileNotFoundError:
        log.warning("GTFS file not found: %s", path)
        return []
    except OSError as e:
        raise ScheduleLoadError(f"failed to open {path}: {e}") from e

    rows: list[dict[str, str]] = []
    with fh:
        reader = csv.reader(fh, delimiter=delim, skipinitialspace=True)
        try:
            header = next(reader)
        except StopIteration:
            raise ScheduleLoadError(f"failed to read CSV header: {path} is empty") from None
        except (csv.Error, UnicodeDecodeError) as e:
            raise ScheduleLoadError(f"failed to read CSV header of {path}: {e}") from e

        headers = [h.strip().lstrip("\ufeff") for h in header]
        missing = [c for c in REQUIRED_COLUMNS.get(path.name, ()) if c not in headers]
        if missing:
            raise ScheduleLoadError(f"{path.name}: missing column(s) {', '.join(missing)}")

        while True:
            try:
                record = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                log.warning("Error reading CSV line in %s, skipping: %s", path.name, e)
                continue
            except UnicodeDecodeError as e:
                raise ScheduleLoadError(f"failed to decode {path}: {e}") from e
            if not record:
                continue
            rows.append(_norm_row(headers, record))
    return rows


# -------------------- Row conversion --------------------


def _fnum(s: str | None) -> float | None:
    if not s:
        return None
    try:
        return float(s.replace(",", "."))
    except ValueError:
        return None


def _int_or(s: str | None, default: int) -> int:
    try:
        return int(s) if s not in (None, "") else default
    except ValueError:
        return default


def _agency(row: dict) -> Agency:
    return Agency(agency_id=row.get("agency_id", ""), name=row.get("agency_name", ""))


def _stop(row: dict) -> Stop:
    return Stop(
        stop_id=row.get("stop_id", ""),
        name=row.get("stop_name", ""),
        lat=_fnum(row.get("stop_lat")),
        lon=_fnum(row.get("stop_lon")),
    )


def _route(row: dict) -> Route:
    return Route(
        route_id=row.get("route_id", ""),
        short_name=row.get("route_short_name", ""),
        long_name=row.get("route_long_name", ""),
        agency_id=row.get("agency_id", ""),
    )


def _trip(row: dict) -> Trip:
    return Trip(
        trip_id=row.get("trip_id", ""),
        route_id=row.get("route_id", ""),
        headsign=row.get("trip_headsign") or None,
        service_id=row.get("service_id") or None,
    )


def _stop_time(row: dict) -> StopTimeEntry:
    arr = row.get("arrival_time", "")
    dep = row.get("departure_time", "")
    return StopTimeEntry(
        trip_id=row.get("trip_id", ""),
        stop_id=row.get("stop_id", ""),
        sequence=_int_or(row.get("stop_sequence"), -1),
        arrival_time=arr,
        departure_time=dep,
        arrival_minutes=to_minutes(arr),
        departure_minutes=to_minutes(dep),
    )


def _calendar(row: dict) -> CalendarEntry:
    return CalendarEntry(
        service_id=row.get("service_id", ""),
        days=tuple(row.get(d, "0") == "1" for d in _WEEKDAYS),
        start_date=row.get("start_date", ""),
        end_date=row.get("end_date", ""),
    )


def build_tables(raw: dict[str, list[dict[str, str]]]) -> ScheduleTables:
    agencies = [_agency(r) for r in raw.get("agency.txt", [])]
    stops = [_stop(r) for r in raw.get("stops.txt", [])]
    routes = [_route(r) for r in raw.get("routes.txt", [])]
    trips = [_trip(r) for r in raw.get("trips.txt", [])]
    stop_times = [_stop_time(r) for r in raw.get("stop_times.txt", [])]
    calendar = [_calendar(r) for r in raw.get("calendar.txt", [])]

    by_trip: dict[str, list[StopTimeEntry]] = {}
    for st in stop_times:
        by_trip.setdefault(st.trip_id, []).append(st)
    for entries in by_trip.values():
        entries.sort(key=lambda e: e.sequence)

    return ScheduleTables(
        agencies=agencies,
        stops=stops,
        routes=routes,
        trips=trips,
        stop_times=stop_times,
        calendar=calendar,
        stops_by_id={s.stop_id: s for s in stops if s.stop_id},
        trips_by_id={t.trip_id: t for t in trips if t.trip_id},
        routes_by_id={r.route_id: r for r in routes if r.route_id},
        agencies_by_id={a.agency_id: a for a in agencies if a.agency_id},
        stop_times_by_trip=by_trip,
    )


def _fold(s: str | None) -> str:
    s = unicodedata.normalize("NFKD", s or "")
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return s.strip().lower()


def _swiss_timestamp(now: datetime) -> str:
    return f"{now.month}/{now.day}/{now.year}, {now:%H:%M:%S}"


# -------------------- Schedule Store --------------------


class ScheduleStore:
    """
    In-memory GTFS schedule guarded by a reader/writer lock.

    Each load builds a fresh ScheduleTables snapshot and swaps it in under the
    write lock; queries read the current snapshot under the read lock.
    """

    def __init__(self, data_path: str | Path | None = None):
        self.data_path = Path(data_path or settings.GTFS_DATA_PATH)
        self._lock = ReadWriteLock()
        self._tables = ScheduleTables()
        self._loaded = False
        self._loaded_at: float | None = None

    # -------------------- Load lifecycle --------------------

    def load(self, source_dir: str | Path | None = None) -> None:
        src = Path(source_dir) if source_dir is not None else self.data_path
        log.info("Loading GTFS data from %s", src)
        t0 = time.monotonic()

        # one task per file, joined before indexing
        with ThreadPoolExecutor(max_workers=len(GTFS_FILES), thread_name_prefix="gtfs") as pool:
            futures = {name: pool.submit(read_gtfs_file, src / name) for name in GTFS_FILES}
            raw: dict[str, list[dict[str, str]]] = {}
            errors: list[ScheduleLoadError] = []
            for name, fut in futures.items():
                try:
                    raw[name] = fut.result()
                except ScheduleLoadError as e:
                    errors.append(e)

        if errors:
            if len(errors) > 1:
                log.warning("GTFS load: %d files failed, reporting the first", len(errors))
            raise errors[0]

        tables = build_tables(raw)

        with self._lock.write():
            self.data_path = src
            self._tables = tables
            self._loaded = True
            self._loaded_at = time.time()

        log.info(
            "GTFS data loaded stops=%d routes=%d trips=%d stop_times=%d took=%.2fs",
            len(tables.stops),
            len(tables.routes),
            len(tables.trips),
            len(tables.stop_times),
            time.monotonic() - t0,
        )

    def is_loaded(self) -> bool:
        with self._lock.read():
            return self._loaded

    @property
    def loaded_at(self) -> float | None:
        """Epoch seconds of the last successful load, None before the first one."""
        return self._loaded_at

    @contextmanager
    def reading(self) -> Iterator[ScheduleTables]:
        """Hold the read lock for the duration of a query over one snapshot."""
        with self._lock.read():
            yield self._tables

    # -------------------- Queries --------------------

    def get_stats(self, now: datetime | None = None) -> ScheduleStats:
        now = now or now_local(settings.TIMEZONE)
        with self.reading() as t:
            return ScheduleStats(
                agencies=len(t.agencies),
                stops=len(t.stops),
                routes=len(t.routes),
                trips=len(t.trips),
                stop_times=len(t.stop_times),
                data_loaded=self._loaded,
                timestamp=_swiss_timestamp(now),
            )

    def get_stations(self, limit: int, offset: int) -> tuple[list[Station], int]:
        with self.reading() as t:
            total = len(t.stops)
            if offset >= total:
                return [], total
            page = t.stops[offset : offset + limit]
            return [station_from_stop(s) for s in page], total

    def get_station(self, stop_id: str) -> Station | None:
        with self.reading() as t:
            stop = t.stop(stop_id)
            return station_from_stop(stop) if stop else None

    def search_stations(self, query: str) -> list[Station]:
        q = _fold(query)
        if not q:
            return []
        with self.reading() as t:
            return [
                station_from_stop(s)
                for s in t.stops
                if q in _fold(s.name) or q in _fold(s.stop_id)
            ]

    def get_nearby_stations(self, lat: float, lon: float, radius_km: float) -> list[Station]:
        found: list[tuple[float, Stop]] = []
        with self.reading() as t:
            for s in t.stops:
                d = s.distance_km_to(lat, lon)
                if d <= radius_km:
                    found.append((round(d * 100) / 100, s))
        found.sort(key=lambda x: x[0])
        return [station_from_stop(s, distance=d) for d, s in found]

    def get_station_departures(
        self, stop_id: str, now: datetime | None = None
    ) -> StationDepartures | None:
        now = now or now_local(settings.TIMEZONE)
        now_s = now.hour * 3600 + now.minute * 60 + now.second

        with self.reading() as t:
            stop = t.stop(stop_id)
            if stop is None:
                return None

            departures: list[Departure] = []
            for st in t.stop_times:
                if st.stop_id != stop_id:
                    continue
                dep_s = to_seconds(st.departure_time)
                if dep_s < 0 or dep_s <= now_s:
                    continue

                trip = t.trip(st.trip_id)
                if trip is None:
                    continue
                route = t.route(trip.route_id)
                if route is None:
                    continue
                agency = t.agency(route.agency_id)

                departures.append(
                    Departure(
                        trip_id=st.trip_id,
                        route_name=route.short_name,
                        route_long_name=route.long_name,
                        headsign=trip.headsign or route.long_name or route.short_name,
                        operator=agency.name if agency else "Unknown",
                        departure_time=st.departure_time,
                        arrival_time=st.arrival_time,
                        sequence=max(st.sequence, 0),
                    )
                )
                if len(departures) >= MAX_DEPARTURES:
                    break

        departures.sort(key=lambda d: to_seconds(d.departure_time))
        return StationDepartures(
            station=station_from_stop(stop),
            departures=departures,
            count=len(departures),
            timestamp=_swiss_timestamp(now),
        )

    # -------------------- Reload watch --------------------

    def fingerprint(self, source_dir: str | Path | None = None) -> tuple:
        """(name, size, mtime) of each GTFS file; missing files count as None."""
        src = Path(source_dir) if source_dir is not None else self.data_path
        out = []
        for name in GTFS_FILES:
            p = src / name
            try:
                st = os.stat(p)
            except FileNotFoundError:
                out.append((name, None))
                continue
            out.append((name, st.st_size, st.st_mtime_ns))
        return tuple(out)
