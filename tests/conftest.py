"""Shared fixtures: a small Swiss GTFS feed written to a temp directory."""

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from app.services.schedule_store import ScheduleStore

ZURICH = ZoneInfo("Europe/Zurich")

BERN = (46.948832, 7.439136)
OLTEN = (47.351935, 7.907699)
ZURICH_HB = (47.378177, 8.540192)
BASEL = (47.547408, 7.589547)
LUZERN = (47.050168, 8.310229)

GTFS_FILES = {
    "agency.txt": """agency_id,agency_name,agency_url,agency_timezone
11,Schweizerische Bundesbahnen SBB,https://www.sbb.ch,Europe/Zurich
33,BLS AG,https://www.bls.ch,Europe/Zurich
""",
    "stops.txt": f"""stop_id,stop_name,stop_lat,stop_lon
8507000,Bern,{BERN[0]},{BERN[1]}
8500218,Olten,{OLTEN[0]},{OLTEN[1]}
8503000,Zürich HB,{ZURICH_HB[0]},{ZURICH_HB[1]}
8500010,Basel SBB,{BASEL[0]},{BASEL[1]}
8505000,Luzern,{LUZERN[0]},{LUZERN[1]}
""",
    "routes.txt": """route_id,agency_id,route_short_name,route_long_name,route_type
R_IC1,11,IC 1,Genève-Aéroport - St. Gallen,2
R_IR35,99,IR 35,Basel - Luzern,2
R_S1,33,S 1,Bern - Olten,2
""",
    "trips.txt": """route_id,service_id,trip_id,trip_headsign
R_IC1,TA,T_IC_0800,Zürich HB
R_IR35,TA,T_IR_0800,Luzern
R_IC1,TA,T_PAST,Zürich HB
R_GHOST,TA,T_GHOST,Olten
R_IC1,TA,T_NOSTOP,Nowhere
R_S1,TA,T_A,
R_S1,TA,T_SINGLE,
""",
    "stop_times.txt": """trip_id,arrival_time,departure_time,stop_id,stop_sequence
T_IC_0800,08:26:00,08:28:00,8500218,2
T_IC_0800,,08:00:00,8507000,1
T_IC_0800,08:56:00,,8503000,3
T_IR_0800,08:00:00,08:00:00,8500010,1
T_IR_0800,09:00:00,09:00:00,8505000,2
T_PAST,05:00:00,05:00:00,8507000,1
T_PAST,06:00:00,06:00:00,8503000,2
T_GHOST,08:00:00,08:00:00,8500010,1
T_GHOST,08:40:00,08:40:00,8500218,2
T_NOSTOP,08:00:00,08:00:00,8507000,1
T_NOSTOP,08:30:00,08:30:00,9999999,2
T_A,08:00:00,08:00:00,8507000,1
T_A,08:10:00,08:10:00,8500218,2
T_SINGLE,08:00:00,08:00:00,8507000,1
""",
    "calendar.txt": """service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date
TA,1,1,1,1,1,0,0,20261201,20271211
""",
}


def write_gtfs(directory: Path, files: dict[str, str] | None = None, skip=()) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name, content in (files or GTFS_FILES).items():
        if name in skip:
            continue
        (directory / name).write_text(content, encoding="utf-8")
    return directory


def at(hour: int, minute: int, second: int = 0) -> datetime:
    """A fixed Swiss local instant on an arbitrary day."""
    return datetime(2026, 10, 19, hour, minute, second, tzinfo=ZURICH)


@pytest.fixture
def gtfs_dir(tmp_path):
    return write_gtfs(tmp_path / "gtfs")


@pytest.fixture
def store(gtfs_dir):
    s = ScheduleStore(gtfs_dir)
    s.load()
    return s
