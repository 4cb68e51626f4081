# app/domain/models.py
from __future__ import annotations

from dataclasses import dataclass, field

from app.utils.geo import haversine_km

INVALID_TIME = -1


@dataclass(frozen=True)
class Agency:
    agency_id: str
    name: str


@dataclass(frozen=True)
class Stop:
    stop_id: str
    name: str
    lat: float | None
    lon: float | None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None

    def distance_km_to(self, lat: float, lon: float) -> float:
        if not self.has_coordinates:
            return float("inf")
        return haversine_km(self.lat, self.lon, lat, lon)


@dataclass(frozen=True)
class Route:
    route_id: str
    short_name: str
    long_name: str
    agency_id: str


@dataclass(frozen=True)
class Trip:
    trip_id: str
    route_id: str
    headsign: str | None = None
    service_id: str | None = None


@dataclass(frozen=True)
class StopTimeEntry:
    trip_id: str
    stop_id: str
    sequence: int
    arrival_time: str  # raw "HH:MM:SS" text, may be empty
    departure_time: str
    arrival_minutes: int = INVALID_TIME
    departure_minutes: int = INVALID_TIME

    @property
    def resolved_arrival(self) -> int:
        """Arrival in minutes, borrowing the departure when arrival is absent."""
        if self.arrival_minutes >= 0:
            return self.arrival_minutes
        return self.departure_minutes

    @property
    def resolved_departure(self) -> int:
        """Departure in minutes, borrowing the arrival when departure is absent."""
        if self.departure_minutes >= 0:
            return self.departure_minutes
        return self.arrival_minutes


@dataclass(frozen=True)
class CalendarEntry:
    service_id: str
    days: tuple[bool, bool, bool, bool, bool, bool, bool]  # monday..sunday
    start_date: str
    end_date: str


@dataclass(frozen=True)
class ScheduleTables:
    """One immutable snapshot of a loaded GTFS feed plus its lookup indexes."""

    agencies: list[Agency] = field(default_factory=list)
    stops: list[Stop] = field(default_factory=list)
    routes: list[Route] = field(default_factory=list)
    trips: list[Trip] = field(default_factory=list)
    stop_times: list[StopTimeEntry] = field(default_factory=list)
    calendar: list[CalendarEntry] = field(default_factory=list)

    stops_by_id: dict[str, Stop] = field(default_factory=dict)
    trips_by_id: dict[str, Trip] = field(default_factory=dict)
    routes_by_id: dict[str, Route] = field(default_factory=dict)
    agencies_by_id: dict[str, Agency] = field(default_factory=dict)

    # trip_id -> entries ordered by sequence, in first-seen trip order
    stop_times_by_trip: dict[str, list[StopTimeEntry]] = field(default_factory=dict)

    def stop(self, stop_id: str) -> Stop | None:
        return self.stops_by_id.get(stop_id)

    def trip(self, trip_id: str) -> Trip | None:
        return self.trips_by_id.get(trip_id)

    def route(self, route_id: str) -> Route | None:
        return self.routes_by_id.get(route_id)

    def agency(self, agency_id: str) -> Agency | None:
        return self.agencies_by_id.get(agency_id)
