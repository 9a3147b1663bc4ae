"""
Braking Zone Detection

A two-state machine (COASTING, BRAKING) over an exponentially smoothed
deceleration series. Entry and exit thresholds differ so the state does not
flicker when deceleration hovers near one value. Zones shorter than the
minimum duration are discarded.
"""

from typing import List, Optional, Sequence

from . import constants
from .config import BrakingZoneConfig
from .log import get_logger
from .models import BrakingZone, LatLon, Sample, ZonePoint

logger = get_logger(__name__)

COASTING = "COASTING"
BRAKING = "BRAKING"


def _transition_g(prev: Sample, curr: Sample, config: BrakingZoneConfig) -> Optional[float]:
    """Instantaneous longitudinal G between two samples, or None across a gap."""
    dt_s = (curr.t - prev.t) / 1000.0
    if dt_s < config.min_dt_s or dt_s > config.max_dt_s:
        return None
    return (curr.speed_mps - prev.speed_mps) / dt_s / constants.GRAVITY_MPS2


def compute_braking_g_series(samples: Sequence[Sample], config: BrakingZoneConfig = BrakingZoneConfig()) -> List[float]:
    """
    Smoothed longitudinal G, one value per sample.

    The first sample has no transition and reads 0; gaps carry the previous
    smoothed value forward.
    """
    if not samples:
        return []

    series = [0.0]
    smoothed: Optional[float] = None
    for prev, curr in zip(samples, samples[1:]):
        raw = _transition_g(prev, curr, config)
        if raw is not None:
            smoothed = raw if smoothed is None else config.smoothing_alpha * raw + (1 - config.smoothing_alpha) * smoothed
        series.append(smoothed if smoothed is not None else 0.0)
    return series


def _make_zone(samples: Sequence[Sample], start_idx: int, end_idx: int) -> BrakingZone:
    start, end = samples[start_idx], samples[end_idx]
    return BrakingZone(
        start=ZonePoint(lat=start.lat, lon=start.lon, t=start.t, speed_mps=start.speed_mps),
        end=ZonePoint(lat=end.lat, lon=end.lon, t=end.t, speed_mps=end.speed_mps),
        path=tuple(LatLon(s.lat, s.lon) for s in samples[start_idx:end_idx + 1]),
        duration_ms=end.t - start.t,
        speed_delta_mps=end.speed_mps - start.speed_mps,
    )


def detect_braking_zones(samples: Sequence[Sample], config: BrakingZoneConfig = BrakingZoneConfig()) -> List[BrakingZone]:
    """
    Find braking zones in a sample window.

    Args:
        samples: Window to scan.
        config: Entry/exit thresholds (g, negative), minimum duration (ms),
            smoothing alpha and the valid dt range.

    Returns:
        Zones in time order.
    """
    if len(samples) < 3:
        return []

    zones: List[BrakingZone] = []
    state = COASTING
    zone_start = 0
    smoothed: Optional[float] = None

    def close(end_idx: int) -> None:
        if samples[end_idx].t - samples[zone_start].t >= config.min_duration_ms:
            zones.append(_make_zone(samples, zone_start, end_idx))

    for i in range(1, len(samples)):
        raw = _transition_g(samples[i - 1], samples[i], config)
        if raw is None:
            # A gap ends the zone at the last sample before it
            if state == BRAKING:
                close(i - 1)
                state = COASTING
            continue

        smoothed = raw if smoothed is None else config.smoothing_alpha * raw + (1 - config.smoothing_alpha) * smoothed

        if state == COASTING and smoothed < config.entry_threshold_g:
            zone_start = i
            state = BRAKING
        elif state == BRAKING and smoothed > config.exit_threshold_g:
            close(i)
            state = COASTING

    if state == BRAKING:
        close(len(samples) - 1)

    logger.debug("Detected {} braking zones", len(zones))
    return zones
