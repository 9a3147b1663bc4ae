"""
Alfano CSV Parser

Alfano loggers (ADA app, Off Camber Data exports) write a metadata preamble
(Driver:, Track:, Date: ...) followed by a header row and data rows. Comma or
semicolon delimited, quotes allowed.
"""

import math
import re
from typing import Dict

from .. import constants
from ..exceptions import ParseError
from ..models import ParsedSession
from ..utils import clamp
from .base import (
    SNIFF_CHARS,
    Content,
    LogParser,
    RelativeClock,
    SequenceBuilder,
    decode_text,
    detect_delimiter,
    parse_float,
    split_row,
)

# Column names only Alfano exports use
ALFANO_HEADERS = (
    "gps_latitude", "gps_longitude", "gps_speed", "gps_heading", "gps_altitude",
    "latacc", "lonacc", "lat acc", "lon acc", "lateral acc", "longitudinal acc",
)

METADATA_PATTERNS = tuple(
    re.compile(rf"^{key}\s*:", re.IGNORECASE)
    for key in ("driver", "track", "championship", "session", "date", "kart", "engine")
)

COLUMN_ROLES = {
    "time": "time",
    "timestamp": "time",
    "elapsed": "time",
    "elapsed time": "time",
    "time (s)": "time",
    "time (ms)": "time_ms",
    "gps_latitude": "lat",
    "gps_longitude": "lon",
    "latitude": "lat",
    "longitude": "lon",
    "lat": "lat",
    "lon": "lon",
    "long": "lon",
    "gps_speed": "speed",
    "speed": "speed",
    "speed (km/h)": "speed",
    "speed (kph)": "speed",
    "velocity": "speed",
    "gps_heading": "heading",
    "heading": "heading",
    "course": "heading",
    "gps_altitude": "Altitude (m)",
    "altitude": "Altitude (m)",
    "height": "Altitude (m)",
    "alt": "Altitude (m)",
    "latacc": "lat_g",
    "lat acc": "lat_g",
    "lateral acc": "lat_g",
    "lateral acceleration": "lat_g",
    "lat g": "lat_g",
    "lateral g": "lat_g",
    "lonacc": "lon_g",
    "lon acc": "lon_g",
    "longitudinal acc": "lon_g",
    "longitudinal acceleration": "lon_g",
    "lon g": "lon_g",
    "longitudinal g": "lon_g",
    "rpm": "RPM",
    "engine rpm": "RPM",
    "t1": "Temp 1",
    "temp1": "Temp 1",
    "t2": "Temp 2",
    "temp2": "Temp 2",
    "egt": "EGT",
    "exhaust": "EGT",
    "water": "Water Temp",
    "water temp": "Water Temp",
    "oil": "Oil Temp",
    "oil temp": "Oil Temp",
    "throttle": "Throttle",
    "tps": "Throttle",
    "lap": "Lap",
    "laptime": "Lap Time",
    "lap time": "Lap Time",
    "distance": "Distance",
    "satellites": "Satellites",
    "sats": "Satellites",
}

_CORE_ROLES = {"time", "time_ms", "lat", "lon", "speed", "heading", "lat_g", "lon_g"}


def _native_g(value: float) -> float:
    # Values above 10 are m/s^2
    if abs(value) > 10:
        value = value / constants.GRAVITY_MPS2
    return clamp(value, -5.0, 5.0)


def _is_metadata(line: str) -> bool:
    return any(pattern.match(line) for pattern in METADATA_PATTERNS)


class AlfanoParser(LogParser):
    name = "Alfano"

    def detect(self, content: Content) -> bool:
        head = decode_text(content)[:SNIFF_CHARS]
        lower = head.lower()
        if "[header]" in lower or "[data]" in lower:
            return False
        if any(h in lower for h in ALFANO_HEADERS):
            return True
        return any(_is_metadata(line.strip()) for line in head.splitlines()[:20])

    def parse(self, content: Content) -> ParsedSession:
        lines = decode_text(content).splitlines()
        delimiter = detect_delimiter([l for l in lines if l.strip() and not _is_metadata(l.strip())], ",;")

        header_at = -1
        roles: Dict[str, int] = {}
        extra_columns: Dict[int, str] = {}
        for i, line in enumerate(lines[:50]):
            if not line.strip() or _is_metadata(line.strip()):
                continue
            cells = split_row(line, delimiter)
            candidate: Dict[str, int] = {}
            for idx, cell in enumerate(cells):
                role = COLUMN_ROLES.get(cell.lower())
                if role is not None:
                    candidate.setdefault(role, idx)
            if len(candidate) >= 2 and ("lat" in candidate or "speed" in candidate):
                header_at = i
                roles = candidate
                mapped = set(candidate.values())
                extra_columns = {idx: cell for idx, cell in enumerate(cells) if idx not in mapped and cell}
                break

        if header_at < 0:
            raise ParseError("could not find a valid header row", self.name)

        builder = SequenceBuilder(self.name)
        clock = RelativeClock()

        for line in lines[header_at + 1:]:
            line = line.strip()
            if not line or _is_metadata(line):
                continue
            cells = split_row(line, delimiter)
            if len(cells) < 3:
                continue

            def value_of(role):
                idx = roles.get(role)
                if idx is None or idx >= len(cells):
                    return float("nan")
                return parse_float(cells[idx])

            if "time_ms" in roles:
                time_ms = value_of("time_ms")
            else:
                # Time column may be seconds or milliseconds
                raw_time = value_of("time")
                time_ms = raw_time if raw_time > 100000 else raw_time * 1000.0
            if math.isnan(time_ms):
                time_ms = 0.0

            channels = {
                role: value_of(role) for role in roles if role not in _CORE_ROLES
            }
            for native_role, name in (("lat_g", "Lat G (Native)"), ("lon_g", "Lon G (Native)")):
                raw = value_of(native_role)
                if not math.isnan(raw):
                    channels[name] = _native_g(raw)
            if channels.get("RPM", 0.0) < 0:
                del channels["RPM"]
            for idx, col in extra_columns.items():
                if idx < len(cells):
                    channels[col] = parse_float(cells[idx])

            builder.admit(
                t=clock.relative(time_ms),
                lat=value_of("lat"),
                lon=value_of("lon"),
                speed_mps=value_of("speed") / constants.MPS_TO_KPH,
                heading=value_of("heading"),
                channels=channels,
            )

        return builder.build()
