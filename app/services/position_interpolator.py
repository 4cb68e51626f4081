# app/services/position_interpolator.py
from __future__ import annotations

import random
from dataclasses import dataclass

from app.domain.models import Stop, StopTimeEntry
from app.utils.geo import bearing_deg, lerp, segment_distance_km

# Speed bands stand in for missing telemetry. They are presentation
# heuristics, not derived from rolling-stock physics.
LOW_SPEED_KMH = 20
NORMAL_SPEED_BAND = (60, 100)  # [low, high)
HIGH_SPEED_KMH = 200
HIGH_SPEED_BAND = (160, 200)  # [low, high)


@dataclass(frozen=True)
class Segment:
    from_index: int
    to_index: int
    start_minutes: int  # departure from `from`
    end_minutes: int  # arrival at `to`

    @property
    def duration_minutes(self) -> int:
        if self.start_minutes < 0 or self.end_minutes < 0:
            return 0
        return self.end_minutes - self.start_minutes


@dataclass(frozen=True)
class SegmentPosition:
    lat: float
    lon: float
    progress: float
    bearing: int
    distance_km: float
    speed_kmh: int


def locate_segment(entries: list[StopTimeEntry], effective_minutes: int) -> Segment:
    """
    First consecutive stop pair bracketing the effective time. Falls back to the
    first pair when nothing matches (clock skew at trip boundaries).
    """
    for i in range(len(entries) - 1):
        start = entries[i].resolved_departure
        end = entries[i + 1].resolved_arrival
        if start >= 0 and end >= 0 and start <= effective_minutes <= end:
            return Segment(i, i + 1, start, end)
    return Segment(0, 1, entries[0].resolved_departure, entries[1].resolved_arrival)


def _clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else 1.0 if x > 1.0 else x


def segment_progress(segment: Segment, effective_minutes: int, seconds: int = 0) -> float:
    duration = segment.duration_minutes
    if duration <= 0:
        return 0.0
    progress = _clamp01((effective_minutes - segment.start_minutes) / duration)
    progress += (seconds / 60.0) / duration
    return _clamp01(progress)


def estimate_speed(
    distance_km: float, duration_minutes: int, rng: random.Random | None = None
) -> int:
    r = rng or random
    speed = int(distance_km / (duration_minutes / 60.0)) if duration_minutes > 0 else 0
    if speed < LOW_SPEED_KMH:
        speed = r.randrange(*NORMAL_SPEED_BAND)
    if speed > HIGH_SPEED_KMH:
        speed = r.randrange(*HIGH_SPEED_BAND)
    return speed


def interpolate(
    segment: Segment,
    from_stop: Stop,
    to_stop: Stop,
    effective_minutes: int,
    seconds: int = 0,
    rng: random.Random | None = None,
) -> SegmentPosition:
    """Planar lat/lon interpolation along a segment; fine at national scale."""
    progress = segment_progress(segment, effective_minutes, seconds)
    distance = segment_distance_km(from_stop.lat, from_stop.lon, to_stop.lat, to_stop.lon)
    return SegmentPosition(
        lat=lerp(from_stop.lat, to_stop.lat, progress),
        lon=lerp(from_stop.lon, to_stop.lon, progress),
        progress=progress,
        bearing=bearing_deg(from_stop.lat, from_stop.lon, to_stop.lat, to_stop.lon),
        distance_km=distance,
        speed_kmh=estimate_speed(distance, segment.duration_minutes, rng),
    )
