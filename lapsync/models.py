"""
Data Model for Telemetry Processing

This module defines the value types passed between pipeline stages: parsed
samples and sessions, course geometry, laps, speed events, braking zones and
the video sync state. All types are immutable dataclasses; stages produce new
values rather than mutating their inputs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from . import constants


@dataclass(frozen=True)
class Sample:
    """
    One GPS fix.

    Attributes:
        t: Milliseconds since session start (non-decreasing within a session).
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
        speed_mps: Ground speed in meters per second.
        heading: Course over ground in degrees [0, 360), or None if unknown.
        channels: Auxiliary numeric channels keyed by display name.
    """

    t: float
    lat: float
    lon: float
    speed_mps: float
    heading: Optional[float] = None
    channels: Dict[str, float] = field(default_factory=dict)

    @property
    def speed_mph(self) -> float:
        return self.speed_mps * constants.MPS_TO_MPH

    @property
    def speed_kph(self) -> float:
        return self.speed_mps * constants.MPS_TO_KPH


@dataclass(frozen=True)
class Bounds:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


@dataclass(frozen=True)
class ParsedSession:
    """
    A normalized sample sequence produced by a format parser.

    Attributes:
        samples: Time-ordered samples that survived row validation.
        fields: Names of the auxiliary channels present in at least one sample,
            in first-seen order.
        bounds: Bounding box of all sample coordinates.
        duration_ms: Timestamp of the last sample.
        format_name: Name of the parser that produced the session.
        start_date: Absolute start time when the format records one.
    """

    samples: Tuple[Sample, ...]
    fields: Tuple[str, ...]
    bounds: Bounds
    duration_ms: float
    format_name: str
    start_date: Optional[datetime] = None


@dataclass(frozen=True)
class LatLon:
    lat: float
    lon: float


@dataclass(frozen=True)
class TimingLine:
    """An oriented timing-line segment between endpoints a and b."""

    a: LatLon
    b: LatLon


@dataclass(frozen=True)
class Course:
    """
    A lap layout at a venue.

    sector_2 and sector_3 mark the starts of the second and third sectors;
    they are only used for timing when both are present.
    """

    name: str
    start_finish: Optional[TimingLine]
    sector_2: Optional[TimingLine] = None
    sector_3: Optional[TimingLine] = None
    is_user_defined: bool = False


@dataclass(frozen=True)
class Track:
    name: str
    courses: Tuple[Course, ...] = ()
    short_name: Optional[str] = None
    is_user_defined: bool = False


@dataclass(frozen=True)
class LapCrossing:
    """A timing-line crossing between samples sample_index and sample_index + 1."""

    sample_index: int
    crossing_time: float
    fraction: float


@dataclass(frozen=True)
class SectorTimes:
    s1: float
    s2: float
    s3: float


@dataclass(frozen=True)
class Lap:
    lap_number: int
    start_time: float
    end_time: float
    lap_time_ms: float
    start_index: int
    end_index: int
    max_speed_mps: float
    min_speed_mps: float
    sectors: Optional[SectorTimes] = None

    @property
    def max_speed_mph(self) -> float:
        return self.max_speed_mps * constants.MPS_TO_MPH

    @property
    def max_speed_kph(self) -> float:
        return self.max_speed_mps * constants.MPS_TO_KPH

    @property
    def min_speed_mph(self) -> float:
        return self.min_speed_mps * constants.MPS_TO_MPH

    @property
    def min_speed_kph(self) -> float:
        return self.min_speed_mps * constants.MPS_TO_KPH


@dataclass(frozen=True)
class OptimalLap:
    """Sum of the best sector times across laps."""

    lap_time_ms: float
    best_s1: float
    best_s2: float
    best_s3: float
    delta_to_fastest: float


@dataclass(frozen=True)
class SpeedEvent:
    kind: str  # "peak" or "valley"
    index: int
    lat: float
    lon: float
    t: float
    speed_mps: float

    @property
    def speed_mph(self) -> float:
        return self.speed_mps * constants.MPS_TO_MPH

    @property
    def speed_kph(self) -> float:
        return self.speed_mps * constants.MPS_TO_KPH


@dataclass(frozen=True)
class ZonePoint:
    lat: float
    lon: float
    t: float
    speed_mps: float


@dataclass(frozen=True)
class BrakingZone:
    start: ZonePoint
    end: ZonePoint
    path: Tuple[LatLon, ...]
    duration_ms: float
    speed_delta_mps: float  # negative = speed lost


@dataclass(frozen=True)
class VideoSyncState:
    """Snapshot of the video sync engine handed to the presentation layer."""

    video_name: Optional[str]
    is_locked: bool
    is_playing: bool
    sync_offset_ms: float
    fps: float
    video_duration: float
    video_current_time: float
    current_index: int
    is_out_of_range: bool


@dataclass(frozen=True)
class VideoSyncRecord:
    """Persisted sync state for one session."""

    session_id: str
    sync_offset_ms: float
    video_name: str
    video_handle: Optional[str] = None
