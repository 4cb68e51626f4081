# app/routers/trains_api.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder

from app.core.schedule_state import envelope, not_found, require_loaded
from app.services.live_trains import (
    compute_train_stats,
    filter_trains,
    find_train,
    get_live_trains,
)
from app.services.schedule_store import ScheduleStore

router = APIRouter(prefix="/api/trains", tags=["trains"])

UPDATE_INTERVAL_MS = 5000


@router.get("")
def list_trains(
    category: str | None = Query(None),
    operator: str | None = Query(None),
    delayed: bool = Query(False),
    limit: int | None = Query(None, ge=1),
    store: ScheduleStore = Depends(require_loaded),
):
    trains = filter_trains(
        get_live_trains(store),
        category=category,
        operator=operator,
        delayed_only=delayed,
        limit=limit,
    )
    return envelope(
        jsonable_encoder(trains),
        total=len(trains),
        filters={"category": category, "operator": operator, "delayed": delayed, "limit": limit},
    )


@router.get("/live")
def live_trains(
    multiplier: float = Query(1.0, gt=0, le=1440),
    store: ScheduleStore = Depends(require_loaded),
):
    trains = get_live_trains(store, multiplier)
    return envelope(
        jsonable_encoder(trains),
        total=len(trains),
        multiplier=multiplier,
        updateInterval=UPDATE_INTERVAL_MS,
        note="Live train positions from Swiss GTFS data",
    )


@router.get("/stats")
def train_stats(store: ScheduleStore = Depends(require_loaded)):
    stats = compute_train_stats(get_live_trains(store))
    return envelope(jsonable_encoder(stats))


@router.get("/{train_id}")
def train_detail(train_id: str, store: ScheduleStore = Depends(require_loaded)):
    train = find_train(get_live_trains(store), train_id)
    if train is None:
        raise not_found("Train", train_id)
    return envelope(jsonable_encoder(train))
