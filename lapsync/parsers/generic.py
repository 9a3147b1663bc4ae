"""
Generic Columnar Parser

Fallback for any delimited text log whose header names a latitude and a
longitude column. Time and speed columns are optional; the time unit is
inferred from magnitude and the speed unit from the header text.
"""

import math
from typing import Dict, List, Optional, Tuple

from .. import constants
from ..exceptions import ParseError
from ..log import get_logger
from ..models import ParsedSession
from .base import (
    Content,
    LogParser,
    RelativeClock,
    SequenceBuilder,
    decode_text,
    detect_delimiter,
    parse_coordinate,
    parse_float,
    split_row,
)

logger = get_logger(__name__)

LAT_NAMES = ("lat", "latitude", "gps_lat", "gps lat", "gps latitude", "gps_latitude", "lat_deg", "latitude (deg)")
LON_NAMES = ("lon", "lng", "long", "longitude", "gps_lon", "gps_lng", "gps lon", "gps long",
             "gps longitude", "gps_longitude", "lon_deg", "longitude (deg)")
TIME_NAMES = ("time", "timestamp", "t", "elapsed", "elapsed time", "time (s)", "time (ms)",
              "time_s", "time_ms", "utc", "datetime", "seconds", "ms")
HEADING_NAMES = ("heading", "course", "bearing", "cog", "heading (deg)")

SYNTHETIC_INTERVAL_MS = 100.0  # 10 Hz when no time column

HEADER_SCAN_LINES = 20


def _find(names: List[str], candidates: Tuple[str, ...]) -> int:
    for candidate in candidates:
        if candidate in names:
            return names.index(candidate)
    return -1


def _speed_column(names: List[str]) -> Tuple[int, float]:
    """Locate the speed column and the factor converting it to m/s."""
    for idx, name in enumerate(names):
        if "speed" not in name and "velocity" not in name:
            continue
        if "mph" in name:
            return idx, constants.MPH_TO_MPS
        if "knot" in name or "kts" in name or "(kn)" in name:
            return idx, constants.KNOTS_TO_MPS
        if "m/s" in name or "mps" in name or "ms-1" in name:
            return idx, 1.0
        return idx, 1.0 / constants.MPS_TO_KPH
    return -1, 1.0


def _time_scale(first_value: float, header: str) -> float:
    """Multiplier taking the time column to ms."""
    if first_value > 1e12:
        return 1.0  # Unix ms
    if first_value > 1e9:
        return 1000.0  # Unix seconds
    if "ms" in header:
        return 1.0
    return 1000.0


def parse_clock(value: str) -> float:
    """Parse hh:mm:ss(.sss) into ms; falls back to a plain number."""
    if ":" not in value:
        return parse_float(value)
    try:
        parts = [float(p) for p in value.split(":")]
    except ValueError:
        return float("nan")
    seconds = 0.0
    for part in parts:
        seconds = seconds * 60 + part
    return seconds * 1000.0


class GenericCsvParser(LogParser):
    name = "CSV"

    def _header(self, lines: List[str]) -> Tuple[int, str, List[str]]:
        delimiter = detect_delimiter(lines)
        for i, line in enumerate(lines[:HEADER_SCAN_LINES]):
            names = [c.lower() for c in split_row(line, delimiter)]
            if _find(names, LAT_NAMES) >= 0 and _find(names, LON_NAMES) >= 0:
                return i, delimiter, names
        return -1, delimiter, []

    def detect(self, content: Content) -> bool:
        lines = decode_text(content)[:4096].splitlines()
        return self._header(lines)[0] >= 0

    def parse(self, content: Content) -> ParsedSession:
        lines = decode_text(content).splitlines()
        header_at, delimiter, names = self._header(lines)
        if header_at < 0:
            raise ParseError("no latitude/longitude header found", self.name)

        raw_names = split_row(lines[header_at], delimiter)
        lat_col = _find(names, LAT_NAMES)
        lon_col = _find(names, LON_NAMES)
        time_col = _find(names, TIME_NAMES)
        heading_col = _find(names, HEADING_NAMES)
        speed_col, to_mps = _speed_column(names)

        claimed = {lat_col, lon_col, time_col, heading_col, speed_col}
        extra: Dict[int, str] = {i: raw for i, raw in enumerate(raw_names) if i not in claimed and raw}

        if time_col < 0:
            logger.info("{}: no time column, assuming {:.0f} ms sample interval", self.name, SYNTHETIC_INTERVAL_MS)

        builder = SequenceBuilder(self.name)
        time_scale: Optional[float] = None
        clock: Optional[RelativeClock] = None

        for row_number, line in enumerate(lines[header_at + 1:]):
            if not line.strip():
                continue
            cells = split_row(line, delimiter)

            def cell(col: int) -> str:
                return cells[col] if 0 <= col < len(cells) else ""

            if time_col >= 0:
                raw_time = parse_clock(cell(time_col))
                if math.isnan(raw_time):
                    continue
                if time_scale is None:
                    # Only time of day wraps at midnight
                    time_of_day = ":" in cell(time_col)
                    time_scale = 1.0 if time_of_day else _time_scale(raw_time, names[time_col])
                    clock = RelativeClock() if time_of_day else RelativeClock(wrap_ms=None)
                absolute_ms = raw_time * time_scale
            else:
                absolute_ms = row_number * SYNTHETIC_INTERVAL_MS

            if clock is None:
                clock = RelativeClock(wrap_ms=None)

            speed = parse_float(cell(speed_col)) * to_mps if speed_col >= 0 else 0.0

            builder.admit(
                t=clock.relative(absolute_ms),
                lat=parse_coordinate(cell(lat_col)),
                lon=parse_coordinate(cell(lon_col)),
                speed_mps=speed,
                heading=parse_float(cell(heading_col)) if heading_col >= 0 else None,
                channels={name: parse_float(cell(i)) for i, name in extra.items()},
            )

        return builder.build()
