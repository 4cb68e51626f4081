# app/routers/stations_api.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder

from app.core.schedule_state import envelope, not_found, require_loaded
from app.services.schedule_store import ScheduleStore

router = APIRouter(prefix="/api/stations", tags=["stations"])

DEFAULT_RADIUS_KM = 10.0
MAX_RADIUS_KM = 100.0


@router.get("")
def list_stations(
    limit: int = Query(50),
    offset: int = Query(0),
    store: ScheduleStore = Depends(require_loaded),
):
    limit = 50 if limit <= 0 else min(limit, 1000)
    offset = max(offset, 0)
    stations, total = store.get_stations(limit, offset)
    return envelope(
        jsonable_encoder(stations),
        total=total,
        count=len(stations),
        pagination={"limit": limit, "offset": offset},
    )


@router.get("/search/{query}")
def search_stations(query: str, store: ScheduleStore = Depends(require_loaded)):
    if len(query.strip()) < 2:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Invalid query",
                "message": "Search query must be at least 2 characters",
            },
        )
    results = store.search_stations(query)
    return envelope(jsonable_encoder(results), total=len(results))


@router.get("/nearby/{lat}/{lng}")
def nearby_stations(
    lat: float,
    lng: float,
    radius: float | None = Query(None),
    store: ScheduleStore = Depends(require_loaded),
):
    r = DEFAULT_RADIUS_KM if radius is None or radius <= 0 else min(radius, MAX_RADIUS_KM)
    results = store.get_nearby_stations(lat, lng, r)
    return envelope(jsonable_encoder(results), total=len(results), radius=r)


@router.get("/{station_id}")
def station_detail(station_id: str, store: ScheduleStore = Depends(require_loaded)):
    station = store.get_station(station_id)
    if station is None:
        raise not_found("Station", station_id)
    return envelope(jsonable_encoder(station))


@router.get("/{station_id}/departures")
def station_departures(station_id: str, store: ScheduleStore = Depends(require_loaded)):
    deps = store.get_station_departures(station_id)
    if deps is None:
        raise not_found("Station", station_id)
    return envelope(
        {
            "station": jsonable_encoder(deps.station),
            "departures": jsonable_encoder(deps.departures),
        },
        count=deps.count,
        timestamp=deps.timestamp,
        note="Departure data from Swiss GTFS",
    )
