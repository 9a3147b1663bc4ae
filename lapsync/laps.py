"""
Lap and Sector Timing

Laps are found by intersecting each consecutive pair of samples with the
course's timing lines. Coordinates are treated as planar (lon, lat) since
timing lines are only a few metres long. Crossing times are interpolated
between the two samples, so lap times are not quantized to the log rate.
"""

from typing import List, Optional, Sequence

from .config import LapConfig
from .courses import course_has_sectors
from .log import get_logger
from .models import Course, Lap, LapCrossing, OptimalLap, Sample, SectorTimes, TimingLine

logger = get_logger(__name__)


# ============================================================================
# CROSSING DETECTION
# ============================================================================

def segment_crossing(lat1: float, lon1: float, lat2: float, lon2: float,
                     line: TimingLine) -> Optional[float]:
    """
    Intersect the moving segment (lat1, lon1) -> (lat2, lon2) with a timing line.

    Args:
        lat1, lon1: Position of the earlier sample.
        lat2, lon2: Position of the later sample.
        line: Timing line.

    Returns:
        Fraction along the moving segment where it crosses the line, in
        [0, 1), or None if the segments do not intersect or are parallel.
        The half-open range keeps a crossing exactly on a sample from being
        counted by both pairs that share it.
    """
    rx, ry = lon2 - lon1, lat2 - lat1
    sx, sy = line.b.lon - line.a.lon, line.b.lat - line.a.lat

    denom = rx * sy - ry * sx
    if denom == 0:
        return None

    qx, qy = line.a.lon - lon1, line.a.lat - lat1
    t = (qx * sy - qy * sx) / denom
    u = (qx * ry - qy * rx) / denom

    if 0 <= t < 1 and 0 <= u <= 1:
        return t
    return None


def _crossing_at(samples: Sequence[Sample], i: int, line: TimingLine) -> Optional[LapCrossing]:
    a, b = samples[i], samples[i + 1]
    fraction = segment_crossing(a.lat, a.lon, b.lat, b.lon, line)
    if fraction is None:
        return None
    return LapCrossing(sample_index=i, crossing_time=a.t + fraction * (b.t - a.t), fraction=fraction)


def detect_crossings(samples: Sequence[Sample], line: TimingLine) -> List[LapCrossing]:
    """All crossings of a timing line, in sample order."""
    crossings = []
    for i in range(len(samples) - 1):
        crossing = _crossing_at(samples, i, line)
        if crossing is not None:
            crossings.append(crossing)
    return crossings


# ============================================================================
# LAP CONSTRUCTION
# ============================================================================

def _build_lap(samples: Sequence[Sample], lap_number: int,
               start: LapCrossing, end: LapCrossing,
               split_2: Optional[float], split_3: Optional[float]) -> Lap:
    start_index = start.sample_index + 1
    end_index = end.sample_index
    window = samples[start_index:end_index + 1] or samples[start.sample_index:end.sample_index + 2]
    speeds = [s.speed_mps for s in window]

    sectors = None
    if split_2 is not None and split_3 is not None:
        sectors = SectorTimes(
            s1=split_2 - start.crossing_time,
            s2=split_3 - split_2,
            s3=end.crossing_time - split_3,
        )

    return Lap(
        lap_number=lap_number,
        start_time=start.crossing_time,
        end_time=end.crossing_time,
        lap_time_ms=end.crossing_time - start.crossing_time,
        start_index=start_index,
        end_index=end_index,
        max_speed_mps=max(speeds),
        min_speed_mps=min(speeds),
        sectors=sectors,
    )


def calculate_laps(samples: Sequence[Sample], course: Optional[Course],
                   config: LapConfig = LapConfig()) -> List[Lap]:
    """
    Split a sample sequence into laps using a course's timing lines.

    The first start/finish crossing opens lap 1; each later accepted crossing
    closes the open lap and opens the next. A crossing less than
    config.min_lap_time_ms after the previous accepted one is ignored. Sector
    lines are only used when the course defines both, and each is recorded
    at most once per lap (sector 2 before sector 3).

    Args:
        samples: Normalized samples.
        course: Course to time against; no start/finish line means no laps.
        config: Lap detection settings.

    Returns:
        Laps in order, numbered from 1.
    """
    if course is None or course.start_finish is None or len(samples) < 2:
        return []

    with_sectors = course_has_sectors(course)
    laps: List[Lap] = []
    open_crossing: Optional[LapCrossing] = None
    split_2: Optional[float] = None
    split_3: Optional[float] = None

    for i in range(len(samples) - 1):
        crossing = _crossing_at(samples, i, course.start_finish)
        if crossing is not None:
            if open_crossing is None:
                open_crossing = crossing
                split_2 = split_3 = None
                continue
            if crossing.crossing_time - open_crossing.crossing_time >= config.min_lap_time_ms:
                laps.append(_build_lap(samples, len(laps) + 1, open_crossing, crossing, split_2, split_3))
                open_crossing = crossing
                split_2 = split_3 = None
                continue
            logger.debug("Ignoring start/finish crossing {:.0f} ms after lap start",
                         crossing.crossing_time - open_crossing.crossing_time)

        if not with_sectors or open_crossing is None:
            continue
        if split_2 is None:
            sector = _crossing_at(samples, i, course.sector_2)
            if sector is not None:
                split_2 = sector.crossing_time
        elif split_3 is None:
            sector = _crossing_at(samples, i, course.sector_3)
            if sector is not None:
                split_3 = sector.crossing_time

    logger.debug("Detected {} laps on course {!r}", len(laps), course.name)
    return laps


def lap_samples(samples: Sequence[Sample], lap: Lap) -> Sequence[Sample]:
    """Samples that fall inside a lap."""
    return samples[lap.start_index:lap.end_index + 1]


# ============================================================================
# REDUCTIONS & FORMATTING
# ============================================================================

def fastest_lap(laps: Sequence[Lap]) -> Optional[Lap]:
    if not laps:
        return None
    return min(laps, key=lambda lap: lap.lap_time_ms)


def calculate_optimal_lap(laps: Sequence[Lap]) -> Optional[OptimalLap]:
    """
    Theoretical best lap from the best individual sectors.

    Returns:
        OptimalLap, or None when no lap has sector times. delta_to_fastest
        is how much quicker the optimal lap is than the fastest real lap.
    """
    timed = [lap for lap in laps if lap.sectors is not None]
    if not timed:
        return None

    best_s1 = min(lap.sectors.s1 for lap in timed)
    best_s2 = min(lap.sectors.s2 for lap in timed)
    best_s3 = min(lap.sectors.s3 for lap in timed)
    optimal = best_s1 + best_s2 + best_s3

    return OptimalLap(
        lap_time_ms=optimal,
        best_s1=best_s1,
        best_s2=best_s2,
        best_s3=best_s3,
        delta_to_fastest=fastest_lap(laps).lap_time_ms - optimal,
    )


def format_lap_time(ms: float) -> str:
    """90123.4 -> '1:30.123'"""
    total_ms = int(round(ms))
    minutes, rest = divmod(total_ms, 60000)
    return f"{minutes}:{rest / 1000:06.3f}"


def format_sector_time(ms: float) -> str:
    """25123 -> '25.123'"""
    return f"{ms / 1000:.3f}"
