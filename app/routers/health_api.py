# app/routers/health_api.py
from __future__ import annotations

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.schedule_state import get_store
from app.services.schedule_store import ScheduleStore

router = APIRouter(tags=["health"])

_STARTED = time.monotonic()


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, UTC).isoformat(timespec="seconds")


@router.get("/")
def root():
    return {
        "message": "Swiss Railway Network API",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        "endpoints": {
            "health": "/health",
            "trains": "/api/trains",
            "stations": "/api/stations",
        },
    }


@router.get("/health")
def health(store: ScheduleStore = Depends(get_store)):
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        "version": settings.APP_VERSION,
        "uptime": f"{int(time.monotonic() - _STARTED)}s",
        "gtfsReady": store.is_loaded(),
        "gtfsLoadedAt": _iso(store.loaded_at),
    }


@router.get("/health/ready")
def ready(request: Request):
    if not get_store(request).is_loaded():
        return JSONResponse(
            {"status": "not_ready", "message": "GTFS data is still loading"}, status_code=503
        )
    return {"status": "ready"}


@router.get("/health/live")
def live():
    return {"status": "alive"}


@router.get("/api/gtfs/stats")
def gtfs_stats(store: ScheduleStore = Depends(get_store)):
    return store.get_stats().model_dump(by_alias=True)
