"""
Sample Normalization Metrics

This module holds the stateless geometry used at parse time and by the
derived-channel stages: great-circle distance, bearing, heading deltas across
the 0/360 wrap, the teleportation test, coordinate validation and the local
planar projection used for distance accumulation.
"""

import numpy as np
from typing import Optional, Sequence, Tuple

from . import constants
from .log import get_logger

logger = get_logger(__name__)


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula to compute distance along the surface of a sphere.

    Args:
        lat1, lon1: Latitude and longitude of first point in degrees.
        lat2, lon2: Latitude and longitude of second point in degrees.

    Returns:
        Distance in meters between the two points.
    """
    lat1_rad, lon1_rad = np.deg2rad(lat1), np.deg2rad(lon1)
    lat2_rad, lon2_rad = np.deg2rad(lat2), np.deg2rad(lon2)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return float(constants.EARTH_RADIUS_M * c)


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Initial bearing from the first point to the second.

    Returns:
        Bearing in degrees, in the range [0, 360).
    """
    dlon = np.deg2rad(lon2 - lon1)
    lat1_rad = np.deg2rad(lat1)
    lat2_rad = np.deg2rad(lat2)

    y = np.sin(dlon) * np.cos(lat2_rad)
    x = np.cos(lat1_rad) * np.sin(lat2_rad) - np.sin(lat1_rad) * np.cos(lat2_rad) * np.cos(dlon)

    bearing = float(np.rad2deg(np.arctan2(y, x)))
    if bearing < 0:
        bearing += 360.0
    return bearing % 360.0


def normalize_heading(heading: float) -> float:
    """Wrap any heading in degrees into [0, 360)."""
    return float(heading) % 360.0


def heading_delta(h2: Optional[float], h1: Optional[float]) -> float:
    """
    Shortest signed angular difference h2 - h1 in degrees.

    359 -> 1 is +2, not -358. Returns 0 when either heading is unknown.
    """
    if h2 is None or h1 is None:
        return 0.0
    delta = h2 - h1
    if delta > 180:
        delta -= 360
    if delta < -180:
        delta += 360
    return delta


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """Finite, within [-90, 90] x [-180, 180], and not the (0, 0) null fix."""
    if lat is None or lon is None:
        return False
    if not (np.isfinite(lat) and np.isfinite(lon)):
        return False
    if abs(lat) > 90 or abs(lon) > 180:
        return False
    return not (lat == 0 and lon == 0)


def is_teleportation(prev_lat: float, prev_lon: float, prev_t: float,
                     lat: float, lon: float, t: float,
                     format_name: Optional[str] = None) -> bool:
    """
    Check whether a new fix is an implausible jump from the previous one.

    The allowed distance grows with elapsed time (50 m per 40 ms), and jumps
    of 100 m or less are always accepted so short gaps at normal speed are
    not flagged. Gaps of 10 s or more, and non-positive gaps, are never
    considered teleportation.

    Args:
        prev_lat, prev_lon, prev_t: Previous accepted fix (t in ms).
        lat, lon, t: Candidate fix (t in ms).
        format_name: Optional parser name for the debug log.

    Returns:
        True if the candidate should be rejected.
    """
    dt_s = (t - prev_t) / 1000.0
    if dt_s <= 0 or dt_s >= constants.TELEPORT_MAX_GAP_S:
        return False

    dist = haversine_m(prev_lat, prev_lon, lat, lon)
    max_distance = constants.TELEPORT_DISTANCE_PER_TICK_M * (dt_s / constants.TELEPORT_TICK_S)
    if dist > max_distance and dist > constants.TELEPORT_MIN_DISTANCE_M:
        if format_name:
            logger.debug("{} GPS teleportation: {:.0f}m in {:.3f}s", format_name, dist, dt_s)
        return True
    return False


def project_to_plane(lat, lon, center_lat: float, center_lon: float) -> Tuple:
    """
    Convert latitude/longitude to local Cartesian coordinates (x, y).

    Uses a simple equirectangular projection approximation, suitable for
    small tracks where Earth's curvature can be approximated as flat.
    Accepts scalars or arrays.

    Returns:
        Tuple of (x_m, y_m) in meters, where x is east and y is north.
    """
    x = np.deg2rad(np.asarray(lon, dtype=float) - center_lon) * constants.EARTH_RADIUS_M * np.cos(np.deg2rad(center_lat))
    y = np.deg2rad(np.asarray(lat, dtype=float) - center_lat) * constants.EARTH_RADIUS_M
    return x, y


def cumulative_distance_m(lats: Sequence[float], lons: Sequence[float]) -> np.ndarray:
    """
    Cumulative traveled distance along a path, projected around its centroid.

    Returns:
        Array of distances in meters, starting at 0.
    """
    lats = np.asarray(lats, dtype=float)
    lons = np.asarray(lons, dtype=float)
    if lats.size == 0:
        return np.array([], dtype=float)

    x, y = project_to_plane(lats, lons, float(lats.mean()), float(lons.mean()))
    segment = np.hypot(np.diff(x), np.diff(y))
    return np.concatenate(([0.0], np.cumsum(segment)))
