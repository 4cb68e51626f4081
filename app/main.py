from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.routers.health_api import router as health_router
from app.routers.stations_api import router as stations_router
from app.routers.trains_api import router as trains_router
from app.services.schedule_store import ScheduleLoadError, ScheduleStore

logging.basicConfig(
    level=(settings.LOG_LEVEL or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("api")


def _load_schedule(store: ScheduleStore) -> None:
    try:
        store.load()
    except ScheduleLoadError:
        log.exception("Failed to load GTFS data from %s", store.data_path)


def build_scheduler(store: ScheduleStore) -> BackgroundScheduler | None:
    """Reload the schedule when the GTFS files change on disk. Disabled when interval is 0."""
    interval = int(settings.GTFS_WATCH_SECONDS or 0)
    if interval <= 0:
        return None

    s = BackgroundScheduler(timezone="UTC")
    gw_log = logging.getLogger("gtfs-watch")

    def job_watch_gtfs():
        try:
            current = store.fingerprint()
            if current != job_watch_gtfs._last:
                job_watch_gtfs._last = current
                gw_log.info("GTFS files changed in %s, reloading", store.data_path)
                store.load()
        except Exception:
            gw_log.exception("Error watching GTFS")

    job_watch_gtfs._last = store.fingerprint()

    s.add_job(
        job_watch_gtfs,
        "interval",
        seconds=interval,
        id="watch_gtfs",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return s


def create_app(store: ScheduleStore | None = None) -> FastAPI:
    store = store or ScheduleStore(settings.GTFS_DATA_PATH)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not store.is_loaded():
            threading.Thread(
                target=_load_schedule, args=(store,), name="gtfs-load", daemon=True
            ).start()

        scheduler = build_scheduler(store)
        if scheduler:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler:
                scheduler.shutdown(wait=False)

    app = FastAPI(title="swiss-live-trains", version=settings.APP_VERSION, lifespan=lifespan)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL, "http://localhost:3000", "http://localhost:3001"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "X-Requested-With"],
        allow_credentials=True,
        max_age=300,
    )

    app.include_router(health_router)
    app.include_router(trains_router)
    app.include_router(stations_router)
    return app


app = create_app()
