# app/scripts/live_snapshot.py
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi.encoders import jsonable_encoder

from app.config import settings
from app.services.live_trains import compute_train_stats, get_live_trains
from app.services.schedule_store import ScheduleLoadError, ScheduleStore


def _clock_time(value: str) -> tuple[int, int, int]:
    """argparse type for HH:MM[:SS]."""
    parts = value.split(":")
    try:
        if len(parts) not in (2, 3):
            raise ValueError(value)
        h, m, s = (int(x) for x in [*parts, "0"][:3])
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected HH:MM[:SS], got {value!r}") from None
    if not (0 <= h <= 23 and 0 <= m <= 59 and 0 <= s <= 59):
        raise argparse.ArgumentTypeError(f"time out of range: {value!r}")
    return h, m, s


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Load a GTFS directory and print the trains running right now as JSON.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("gtfs_dir", nargs="?", default=settings.GTFS_DATA_PATH, help="GTFS directory")
    p.add_argument("--multiplier", type=float, default=1.0, help="Clock multiplier")
    p.add_argument(
        "--at",
        type=_clock_time,
        default=None,
        help="Local time HH:MM[:SS] to evaluate instead of now (today, Swiss time)",
    )
    p.add_argument("--limit", type=int, default=settings.MAX_LIVE_TRAINS, help="Max trains")
    p.add_argument("--stats", action="store_true", help="Print aggregated stats only")
    return p.parse_args(argv)


def _instant(at: tuple[int, int, int] | None) -> datetime | None:
    if at is None:
        return None
    h, m, s = at
    now = datetime.now(ZoneInfo(settings.TIMEZONE))
    return now.replace(hour=h, minute=m, second=s, microsecond=0)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    store = ScheduleStore(args.gtfs_dir)
    try:
        store.load()
    except ScheduleLoadError as e:
        print(f"GTFS load failed: {e}", file=sys.stderr)
        return 1

    trains = get_live_trains(store, args.multiplier, now=_instant(args.at), limit=args.limit)
    payload = compute_train_stats(trains) if args.stats else trains
    print(json.dumps(jsonable_encoder(payload), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
