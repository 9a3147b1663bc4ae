"""
Configuration Values for the Telemetry Pipeline

Every tunable the core needs is passed in explicitly as one of these frozen
dataclasses. Defaults come from constants.py; callers build a modified copy
with dataclasses.replace() when settings change and re-run the affected stage.
"""

from dataclasses import dataclass, field
from typing import Tuple

from . import constants


@dataclass(frozen=True)
class GForceConfig:
    """Quality gates and smoothing for GPS-derived lateral/longitudinal G."""

    max_g: float = constants.G_MAX
    min_dt_s: float = constants.G_MIN_DT_S
    max_dt_s: float = constants.G_MAX_DT_S
    min_speed_for_lat_mps: float = constants.G_MIN_SPEED_FOR_LAT_MPS
    max_hdop: float = constants.G_MAX_HDOP
    max_heading_rate_dps: float = constants.G_MAX_HEADING_RATE_DPS
    smoothing_window: int = constants.G_SMOOTHING_WINDOW
    # "central", "savgol" or "auto"
    longitudinal_method: str = "central"
    poly_window: int = constants.G_POLY_WINDOW
    poly_order: int = constants.G_POLY_ORDER


@dataclass(frozen=True)
class BrakingZoneConfig:
    entry_threshold_g: float = constants.BRAKING_ENTRY_G
    exit_threshold_g: float = constants.BRAKING_EXIT_G
    min_duration_ms: float = constants.BRAKING_MIN_DURATION_MS
    smoothing_alpha: float = constants.BRAKING_SMOOTHING_ALPHA
    min_dt_s: float = constants.BRAKING_MIN_DT_S
    max_dt_s: float = constants.BRAKING_MAX_DT_S


@dataclass(frozen=True)
class SpeedEventConfig:
    smoothing_window: int = constants.SPEED_EVENT_SMOOTHING_WINDOW
    min_swing_mph: float = constants.SPEED_EVENT_MIN_SWING_MPH
    min_separation_ms: float = constants.SPEED_EVENT_MIN_SEPARATION_MS
    debounce_count: int = constants.SPEED_EVENT_DEBOUNCE_COUNT


@dataclass(frozen=True)
class LapConfig:
    # Minimum elapsed time between two accepted start/finish crossings
    min_lap_time_ms: float = constants.MIN_LAP_TIME_MS


@dataclass(frozen=True)
class VideoSyncConfig:
    default_fps: float = constants.DEFAULT_FPS
    seek_throttle_ms: float = constants.SEEK_THROTTLE_MS
    min_fps: float = constants.MIN_FPS
    max_fps: float = constants.MAX_FPS


@dataclass(frozen=True)
class AnalysisConfig:
    """Bundle of every stage's configuration, used by the session pipeline."""

    gforce: GForceConfig = field(default_factory=GForceConfig)
    braking: BrakingZoneConfig = field(default_factory=BrakingZoneConfig)
    speed_events: SpeedEventConfig = field(default_factory=SpeedEventConfig)
    laps: LapConfig = field(default_factory=LapConfig)
    # Canonical channel ids (see fields.FIELD_ALIASES) left out of payloads
    hidden_fields: Tuple[str, ...] = ()
