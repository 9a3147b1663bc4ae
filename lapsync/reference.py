"""
Reference Lap Comparison

Aligns a lap against a reference lap by distance travelled rather than
elapsed time, producing per-sample pace deltas and the reference speed at
the same point on track.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

from . import constants
from .laps import fastest_lap, lap_samples
from .metrics import cumulative_distance_m
from .models import Lap, Sample


@dataclass(frozen=True)
class ReferenceData:
    """A reference lap with its cumulative distance precomputed."""

    samples: Sequence[Sample]
    distances: np.ndarray
    total_distance: float


def calculate_distance_array(samples: Sequence[Sample]) -> np.ndarray:
    """Cumulative distance in metres along the samples, starting at 0."""
    return cumulative_distance_m([s.lat for s in samples], [s.lon for s in samples])


def compute_reference_data(samples: Sequence[Sample]) -> ReferenceData:
    distances = calculate_distance_array(samples)
    return ReferenceData(
        samples=samples,
        distances=distances,
        total_distance=float(distances[-1]) if distances.size else 0.0,
    )


def _as_reference(reference: Union[ReferenceData, Sequence[Sample]]) -> ReferenceData:
    if isinstance(reference, ReferenceData):
        return reference
    return compute_reference_data(reference)


def _interpolate(current_distances: np.ndarray, ref: ReferenceData, ref_values: np.ndarray) -> List[Optional[float]]:
    """Reference value at each current distance; None beyond the reference lap."""
    values = np.interp(current_distances, ref.distances, ref_values)
    return [
        None if distance > ref.total_distance else float(value)
        for distance, value in zip(current_distances, values)
    ]


def calculate_pace(current: Sequence[Sample],
                   reference: Union[ReferenceData, Sequence[Sample]]) -> List[Optional[float]]:
    """
    Time delta to the reference at each current sample.

    Args:
        current: Samples of the lap being analysed.
        reference: Reference lap samples (or precomputed ReferenceData).

    Returns:
        Seconds behind the reference at the same distance (positive = slower,
        negative = ahead), or None past the end of the reference lap.
    """
    ref = _as_reference(reference)
    if not current or not ref.samples:
        return []

    current_distances = calculate_distance_array(current)
    current_elapsed = np.array([(s.t - current[0].t) / 1000.0 for s in current])
    ref_elapsed = np.array([(s.t - ref.samples[0].t) / 1000.0 for s in ref.samples])

    ref_time = _interpolate(current_distances, ref, ref_elapsed)
    return [
        None if ref_t is None else float(elapsed - ref_t)
        for elapsed, ref_t in zip(current_elapsed, ref_time)
    ]


def calculate_reference_speed(current: Sequence[Sample],
                              reference: Union[ReferenceData, Sequence[Sample]],
                              use_kph: bool = False) -> List[Optional[float]]:
    """Reference speed (mph, or kph) at the distance of each current sample."""
    ref = _as_reference(reference)
    if not current or not ref.samples:
        return []

    factor = constants.MPS_TO_KPH if use_kph else constants.MPS_TO_MPH
    ref_speed = np.array([s.speed_mps * factor for s in ref.samples])
    return _interpolate(calculate_distance_array(current), ref, ref_speed)


def lap_to_fastest_delta(samples: Sequence[Sample], laps: Sequence[Lap], lap_number: int) -> List[Optional[float]]:
    """
    Pace series of one lap against the session's fastest lap.

    Returns:
        Pace deltas in seconds for each sample of the lap, or an empty list
        if the lap does not exist.
    """
    lap = next((lap for lap in laps if lap.lap_number == lap_number), None)
    best = fastest_lap(laps)
    if lap is None or best is None:
        return []
    return calculate_pace(lap_samples(samples, lap), lap_samples(samples, best))
