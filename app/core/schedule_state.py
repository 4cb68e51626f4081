# app/core/schedule_state.py
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request

from app.services.schedule_store import ScheduleStore

SOURCE = "swiss_gtfs_data"


def get_store(request: Request) -> ScheduleStore:
    return request.app.state.store


def require_loaded(request: Request) -> ScheduleStore:
    store = get_store(request)
    if not store.is_loaded():
        raise HTTPException(
            status_code=503,
            detail={
                "error": "Service Unavailable",
                "message": "GTFS data is still loading. Please try again later.",
            },
        )
    return store


def not_found(kind: str, ident: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error": f"{kind} not found", "message": f"{kind} with ID {ident} does not exist"},
    )


def envelope(data: Any, **meta: Any) -> dict[str, Any]:
    m = {k: v for k, v in meta.items() if v is not None}
    m.setdefault("timestamp", datetime.now(UTC).isoformat(timespec="seconds"))
    m.setdefault("source", SOURCE)
    return {"data": data, "meta": m}
