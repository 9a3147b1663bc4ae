"""
GPS-Derived Acceleration Channels

Lateral and longitudinal G are estimated from the sample sequence alone:
    - longitudinal G = dv/dt / g
    - lateral G = v * dHeading/dt / g

Both use a central difference over samples i-1 and i+1 with quality gates
(time gap window, HDOP, minimum speed for heading, heading-rate ceiling),
are clamped, then smoothed with a centered moving average. Longitudinal G
can instead come from a Savitzky-Golay derivative of the speed series.

Everything here is a pure function of (samples, config).
"""

from dataclasses import dataclass, replace
from typing import Sequence, Tuple

import numpy as np
from scipy.signal import savgol_filter

from . import constants
from .config import GForceConfig
from .log import get_logger
from .metrics import heading_delta
from .models import ParsedSession, Sample
from .utils import moving_average

logger = get_logger(__name__)

LONGITUDINAL_METHODS = ("central", "savgol", "auto")


@dataclass(frozen=True)
class DerivedChannels:
    """Per-sample derived values, index-aligned with the input samples."""

    lat_g: Tuple[float, ...]
    lon_g: Tuple[float, ...]
    longitudinal_method: str


# ============================================================================
# QUALITY GATES
# ============================================================================

def _neighbour_dt(t: np.ndarray) -> np.ndarray:
    """Seconds between samples i-1 and i+1, clamped at the sequence ends."""
    n = t.size
    prev_idx = np.maximum(np.arange(n) - 1, 0)
    next_idx = np.minimum(np.arange(n) + 1, n - 1)
    return (t[next_idx] - t[prev_idx]) / 1000.0


def _valid_mask(samples: Sequence[Sample], dt: np.ndarray, config: GForceConfig) -> np.ndarray:
    hdop = np.array([s.channels.get(constants.HDOP_CHANNEL, np.nan) for s in samples], dtype=float)
    good_dt = (dt >= config.min_dt_s) & (dt <= config.max_dt_s)
    # A missing HDOP never disqualifies a sample
    good_hdop = ~(hdop > config.max_hdop)
    return good_dt & good_hdop


# ============================================================================
# DERIVATIVES
# ============================================================================

def central_difference_g(samples: Sequence[Sample], config: GForceConfig = GForceConfig()) -> Tuple[np.ndarray, np.ndarray]:
    """
    Raw (unsmoothed, clamped) lateral and longitudinal G by central difference.

    Samples failing the dt or HDOP gate get 0 for both channels.

    Returns:
        Tuple of (lat_g, lon_g) arrays.
    """
    n = len(samples)
    lat_g = np.zeros(n)
    lon_g = np.zeros(n)
    if n < 2:
        return lat_g, lon_g

    t = np.array([s.t for s in samples], dtype=float)
    speed = np.array([s.speed_mps for s in samples], dtype=float)
    dt = _neighbour_dt(t)
    valid = _valid_mask(samples, dt, config)

    for i in range(n):
        if not valid[i]:
            continue
        prev_i = max(0, i - 1)
        next_i = min(n - 1, i + 1)

        lon_g[i] = (speed[next_i] - speed[prev_i]) / dt[i] / constants.GRAVITY_MPS2

        prev_h = samples[prev_i].heading
        next_h = samples[next_i].heading
        if prev_h is None or next_h is None or speed[i] < config.min_speed_for_lat_mps:
            continue
        d_heading = heading_delta(next_h, prev_h)
        if abs(d_heading) / dt[i] > config.max_heading_rate_dps:
            continue
        yaw_rate = np.deg2rad(d_heading) / dt[i]
        lat_g[i] = speed[i] * yaw_rate / constants.GRAVITY_MPS2

    return (np.clip(lat_g, -config.max_g, config.max_g),
            np.clip(lon_g, -config.max_g, config.max_g))


def savgol_longitudinal_g(samples: Sequence[Sample], config: GForceConfig = GForceConfig()) -> np.ndarray:
    """
    Longitudinal G from a local cubic least-squares derivative of speed.

    The filter assumes uniform spacing, so the median sample interval is used
    as the step. Gated samples are zeroed and the result is clamped.

    Raises:
        ValueError: If the sequence is shorter than the filter window.
    """
    window = config.poly_window if config.poly_window % 2 else config.poly_window + 1
    n = len(samples)
    if n < window:
        raise ValueError(f"savgol derivative needs at least {window} samples, got {n}")

    t = np.array([s.t for s in samples], dtype=float)
    speed = np.array([s.speed_mps for s in samples], dtype=float)
    step_s = float(np.median(np.diff(t))) / 1000.0
    if step_s <= 0:
        return np.zeros(n)

    dv_dt = savgol_filter(speed, window_length=window, polyorder=min(config.poly_order, window - 1),
                          deriv=1, delta=step_s, mode="interp")
    lon_g = np.where(_valid_mask(samples, _neighbour_dt(t), config), dv_dt / constants.GRAVITY_MPS2, 0.0)
    return np.clip(lon_g, -config.max_g, config.max_g)


def _resolve_method(method: str, n: int, config: GForceConfig) -> str:
    if method not in LONGITUDINAL_METHODS:
        raise ValueError(f"Unknown longitudinal method: {method}. Must be one of: {', '.join(LONGITUDINAL_METHODS)}")
    if method == "central":
        return "central"
    window = config.poly_window if config.poly_window % 2 else config.poly_window + 1
    if n < window:
        if method == "savgol":
            logger.debug("Sequence of {} samples is shorter than savgol window {}, using central difference",
                         n, config.poly_window)
        return "central"
    return "savgol"


# ============================================================================
# PUBLIC API
# ============================================================================

def compute_derived_channels(samples: Sequence[Sample], config: GForceConfig = GForceConfig()) -> DerivedChannels:
    """
    Compute smoothed lateral and longitudinal G for a sample sequence.

    Args:
        samples: Normalized samples (a ParsedSession's samples).
        config: Quality gates, smoothing window and longitudinal method.

    Returns:
        DerivedChannels aligned with the input.

    Raises:
        ValueError: If config.longitudinal_method is not recognized.
    """
    method = _resolve_method(config.longitudinal_method, len(samples), config)

    lat_g, lon_g = central_difference_g(samples, config)
    lat_g = moving_average(lat_g, config.smoothing_window)

    if method == "savgol":
        lon_g = savgol_longitudinal_g(samples, config)
    else:
        lon_g = moving_average(lon_g, config.smoothing_window)

    return DerivedChannels(
        lat_g=tuple(float(v) for v in lat_g),
        lon_g=tuple(float(v) for v in lon_g),
        longitudinal_method=method,
    )


def attach_derived_channels(session: ParsedSession, config: GForceConfig = GForceConfig()) -> ParsedSession:
    """Return a copy of the session with Lat G / Lon G added to every sample."""
    derived = compute_derived_channels(session.samples, config)

    samples = tuple(
        replace(sample, channels={
            **sample.channels,
            constants.LAT_G_CHANNEL: lat,
            constants.LON_G_CHANNEL: lon,
        })
        for sample, lat, lon in zip(session.samples, derived.lat_g, derived.lon_g)
    )
    fields = tuple(dict.fromkeys((constants.LAT_G_CHANNEL, constants.LON_G_CHANNEL) + session.fields))
    return replace(session, samples=samples, fields=fields)
