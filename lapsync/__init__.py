"""
Lap Telemetry and Video Sync

This package turns raw data-logger files into normalized GPS sample
sequences and analyses them: GPS-derived G channels, lap and sector timing,
speed peaks and valleys, braking zones, reference-lap pace, and the mapping
between telemetry time and an on-board video.

The names below are re-exported from the individual modules.
"""

# Import configuration and data model
from .config import (
    AnalysisConfig,
    BrakingZoneConfig,
    GForceConfig,
    LapConfig,
    SpeedEventConfig,
    VideoSyncConfig,
)
from .models import (
    Bounds,
    BrakingZone,
    Course,
    Lap,
    LapCrossing,
    LatLon,
    OptimalLap,
    ParsedSession,
    Sample,
    SectorTimes,
    SpeedEvent,
    TimingLine,
    Track,
    VideoSyncRecord,
    VideoSyncState,
    ZonePoint,
)
from .exceptions import (
    CourseError,
    LapSyncError,
    NoValidSamplesError,
    ParseError,
    StorageError,
    UnsupportedFormatError,
    VideoSyncError,
)

# Import parsing functions
from .parsers import (
    PARSERS,
    detect_format,
    parse_log,
)

# Import analysis functions
from .derived import (
    attach_derived_channels,
    compute_derived_channels,
)
from .courses import (
    abbreviate_track_name,
    build_course,
    course_has_sectors,
    parse_timing_line,
    track_display_name,
)
from .laps import (
    calculate_laps,
    calculate_optimal_lap,
    detect_crossings,
    fastest_lap,
    format_lap_time,
    format_sector_time,
    lap_samples,
    segment_crossing,
)
from .speed_events import (
    detect_speed_events,
)
from .braking import (
    compute_braking_g_series,
    detect_braking_zones,
)
from .fields import (
    canonical_field_id,
    is_field_hidden,
    visible_fields,
)
from .reference import (
    calculate_distance_array,
    calculate_pace,
    calculate_reference_speed,
    compute_reference_data,
    lap_to_fastest_delta,
)

# Import video sync
from .video_sync import (
    AsyncioFrameScheduler,
    VideoSyncEngine,
    detect_fps,
    find_nearest_index,
)
from .storage import (
    JsonSyncStore,
)

# Import session builder and export functions
from .session import (
    analyse_session,
    build_session_payload,
    load_session,
    recompute_laps,
)
from .export import (
    export_lap_csv,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "AnalysisConfig",
    "BrakingZoneConfig",
    "GForceConfig",
    "LapConfig",
    "SpeedEventConfig",
    "VideoSyncConfig",
    # Data model
    "Bounds",
    "BrakingZone",
    "Course",
    "Lap",
    "LapCrossing",
    "LatLon",
    "OptimalLap",
    "ParsedSession",
    "Sample",
    "SectorTimes",
    "SpeedEvent",
    "TimingLine",
    "Track",
    "VideoSyncRecord",
    "VideoSyncState",
    "ZonePoint",
    # Exceptions
    "CourseError",
    "LapSyncError",
    "NoValidSamplesError",
    "ParseError",
    "StorageError",
    "UnsupportedFormatError",
    "VideoSyncError",
    # Parsing
    "PARSERS",
    "detect_format",
    "parse_log",
    # Analysis
    "attach_derived_channels",
    "compute_derived_channels",
    "abbreviate_track_name",
    "build_course",
    "course_has_sectors",
    "parse_timing_line",
    "track_display_name",
    "calculate_laps",
    "calculate_optimal_lap",
    "detect_crossings",
    "fastest_lap",
    "format_lap_time",
    "format_sector_time",
    "lap_samples",
    "segment_crossing",
    "detect_speed_events",
    "compute_braking_g_series",
    "detect_braking_zones",
    "calculate_distance_array",
    "calculate_pace",
    "calculate_reference_speed",
    "compute_reference_data",
    "lap_to_fastest_delta",
    "canonical_field_id",
    "is_field_hidden",
    "visible_fields",
    # Video sync
    "AsyncioFrameScheduler",
    "VideoSyncEngine",
    "detect_fps",
    "find_nearest_index",
    "JsonSyncStore",
    # Session builder & export
    "analyse_session",
    "build_session_payload",
    "load_session",
    "recompute_laps",
    "export_lap_csv",
]
