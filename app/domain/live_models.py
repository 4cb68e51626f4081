# app/domain/live_models.py
from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from app.domain.models import Stop


class _WireModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinate(_WireModel):
    x: float | None = Field(None, description="longitude")
    y: float | None = Field(None, description="latitude")


class Station(_WireModel):
    id: str
    name: str
    coordinate: Coordinate
    distance: float | None = None


class Position(_WireModel):
    lat: float
    lng: float


class TimetableEntry(_WireModel):
    station: Station | None = None
    arrival_time: str = ""
    departure_time: str = ""
    platform: str = ""
    is_current_station: bool = False
    is_passed: bool = False
    is_skipped: bool = False


class TrainView(_WireModel):
    id: str
    name: str
    category: str
    number: str
    operator: str
    origin: str = Field(alias="from")
    destination: str = Field(alias="to")
    position: Position | None = None
    current_station: Station | None = None
    delay: int = Field(0, description="pseudo-delay in minutes, not measured")
    cancelled: bool = False
    speed: int = Field(0, description="km/h, heuristic estimate")
    direction: int = Field(0, description="bearing in degrees [0, 360)")
    last_update: str = ""
    departure_time: str = ""
    arrival_time: str = ""
    timetable: list[TimetableEntry] = Field(default_factory=list)


class TrainStats(_WireModel):
    total: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_operator: dict[str, int] = Field(default_factory=dict)
    delayed: int = 0
    on_time: int = 0
    cancelled: int = 0
    average_delay: float = 0.0
    average_speed: float = 0.0


class ScheduleStats(_WireModel):
    agencies: int = 0
    stops: int = 0
    routes: int = 0
    trips: int = 0
    stop_times: int = 0
    data_loaded: bool = False
    timestamp: str = ""


class Departure(_WireModel):
    trip_id: str
    route_name: str
    route_long_name: str
    headsign: str
    operator: str
    departure_time: str
    arrival_time: str
    sequence: int


class StationDepartures(_WireModel):
    station: Station
    departures: list[Departure] = Field(default_factory=list)
    count: int = 0
    timestamp: str = ""


def station_from_stop(stop: Stop, distance: float | None = None) -> Station:
    """Wire representation of a schedule Stop (coordinate x=lon, y=lat)."""
    return Station(
        id=stop.stop_id,
        name=stop.name,
        coordinate=Coordinate(x=stop.lon, y=stop.lat),
        distance=distance,
    )
