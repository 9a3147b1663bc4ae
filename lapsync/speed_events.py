"""
Speed Peak/Valley Detection

Finds the local speed extrema that mark corner entries (peaks) and apexes
(valleys). The speed trace is lightly smoothed first, then scanned as a
zigzag: an extremum is confirmed once speed has moved away from it by at
least the minimum swing for debounce_count consecutive samples.
"""

from typing import List, Sequence

import numpy as np

from . import constants
from .config import SpeedEventConfig
from .models import Sample, SpeedEvent
from .utils import moving_average


def _event(kind: str, samples: Sequence[Sample], idx: int, smoothed_mph: np.ndarray, offset: int) -> SpeedEvent:
    sample = samples[idx]
    return SpeedEvent(
        kind=kind,
        index=idx + offset,
        lat=sample.lat,
        lon=sample.lon,
        t=sample.t,
        speed_mps=float(smoothed_mph[idx]) / constants.MPS_TO_MPH,
    )


def detect_speed_events(samples: Sequence[Sample], config: SpeedEventConfig = SpeedEventConfig(),
                        index_offset: int = 0) -> List[SpeedEvent]:
    """
    Detect speed peaks and valleys in a sample window.

    Args:
        samples: Window to scan (a whole session or one lap's samples).
        config: Smoothing window, minimum swing (mph), minimum separation
            between events (ms) and debounce count.
        index_offset: Added to every event index, so events found in a lap
            window can refer to session sample indices.

    Returns:
        Events in time order, alternating between peaks and valleys except
        where an event was dropped for being too close to the previous one.
    """
    n = len(samples)
    if n < 3:
        return []

    speed = moving_average([s.speed_mph for s in samples], config.smoothing_window)
    swing = config.min_swing_mph

    # Find the first swing to learn which way the trace is heading
    lo = hi = 0
    start = None
    for i in range(1, n):
        if speed[i] > speed[hi]:
            hi = i
        if speed[i] < speed[lo]:
            lo = i
        if speed[hi] - speed[lo] >= swing:
            start = i
            break
    if start is None:
        return []

    rising = hi > lo
    extreme = hi if rising else lo
    confirm = 0
    last_event_t = None
    events: List[SpeedEvent] = []

    for i in range(start + 1, n):
        if rising:
            if speed[i] > speed[extreme]:
                extreme, confirm = i, 0
                continue
            moved = speed[extreme] - speed[i] >= swing
        else:
            if speed[i] < speed[extreme]:
                extreme, confirm = i, 0
                continue
            moved = speed[i] - speed[extreme] >= swing

        if not moved:
            confirm = 0
            continue

        confirm += 1
        if confirm < config.debounce_count:
            continue

        t = samples[extreme].t
        if last_event_t is None or t - last_event_t >= config.min_separation_ms:
            events.append(_event("peak" if rising else "valley", samples, extreme, speed, index_offset))
            last_event_t = t

        # Track the opposite extremum from the confirmed one onward
        segment = speed[extreme:i + 1]
        extreme = extreme + int(np.argmin(segment) if rising else np.argmax(segment))
        rising = not rising
        confirm = 0

    return events
