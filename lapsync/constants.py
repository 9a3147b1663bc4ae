"""
Constants for Telemetry Processing and Video Sync

This module defines the physical constants, unit conversion factors, default
tunables and path constants used throughout the lapsync pipeline. The default
tunables are calibration targets; the configuration dataclasses in config.py
are built from them.
"""

from pathlib import Path

# Data folder is one level up from lapsync/
DATA_DIR = Path(__file__).parent.parent / "data"
SYNC_STORE_FILE = DATA_DIR / "video_sync.json"

# ============================================================================
# PHYSICS & UNITS
# ============================================================================

GRAVITY_MPS2 = 9.80665
EARTH_RADIUS_M = 6371000.0

MPS_TO_MPH = 2.23694
MPS_TO_KPH = 3.6
MPH_TO_MPS = 0.44704
KNOTS_TO_MPS = 0.514444

MS_PER_DAY = 86400000

# ============================================================================
# ROW VALIDATION
# ============================================================================

MAX_SPEED_MPS = 150.0  # ~335 mph, anything above is a GPS glitch

# Teleportation test: only evaluated for 0 < dt < TELEPORT_MAX_GAP_S
TELEPORT_MAX_GAP_S = 10.0
TELEPORT_DISTANCE_PER_TICK_M = 50.0
TELEPORT_TICK_S = 0.04
TELEPORT_MIN_DISTANCE_M = 100.0

# ============================================================================
# DERIVED CHANNELS (G-FORCE)
# ============================================================================

G_MAX = 3.0
G_MIN_DT_S = 0.05
G_MAX_DT_S = 2.0
G_MIN_SPEED_FOR_LAT_MPS = 2.0  # heading unreliable below this
G_MAX_HDOP = 5.0
G_MAX_HEADING_RATE_DPS = 180.0
G_SMOOTHING_WINDOW = 5
G_POLY_WINDOW = 15
G_POLY_ORDER = 3

LAT_G_CHANNEL = "Lat G"
LON_G_CHANNEL = "Lon G"
HDOP_CHANNEL = "HDOP"

# ============================================================================
# BRAKING ZONES
# ============================================================================

BRAKING_ENTRY_G = -0.25
BRAKING_EXIT_G = -0.10
BRAKING_MIN_DURATION_MS = 120.0
BRAKING_SMOOTHING_ALPHA = 0.4
BRAKING_MIN_DT_S = 0.01
BRAKING_MAX_DT_S = 2.0

# ============================================================================
# SPEED EVENTS
# ============================================================================

SPEED_EVENT_SMOOTHING_WINDOW = 5
SPEED_EVENT_MIN_SWING_MPH = 3.0
SPEED_EVENT_MIN_SEPARATION_MS = 1000.0
SPEED_EVENT_DEBOUNCE_COUNT = 2

# ============================================================================
# LAPS
# ============================================================================

MIN_LAP_TIME_MS = 10000.0

# ============================================================================
# VIDEO SYNC
# ============================================================================

DEFAULT_FPS = 30.0
MIN_FPS = 1.0
MAX_FPS = 120.0
SEEK_THROTTLE_MS = 66.0
FPS_DETECT_FRAMES = 10
FPS_DETECT_MAX_DELTA_S = 0.2
