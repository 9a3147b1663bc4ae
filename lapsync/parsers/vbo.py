"""
Racelogic VBOX (.vbo) Parser

VBO files are sectioned text: [header], [column names], [data]. Data rows
are whitespace-delimited. Time is hhmmss.sss (or seconds since midnight),
velocity is km/h, and native accelerometer channels are already in g.
"""

import math
from typing import Dict

from .. import constants
from ..exceptions import ParseError
from ..models import ParsedSession
from .base import (
    SNIFF_CHARS,
    Content,
    LogParser,
    RelativeClock,
    SequenceBuilder,
    decode_text,
    hhmmss_to_ms,
    parse_coordinate,
    parse_float,
)

# VBO column name (lowercase) -> role
KNOWN_COLUMNS = {
    "sats": "sats",
    "satellites": "sats",
    "time": "time",
    "lat": "lat",
    "latitude": "lat",
    "long": "lon",
    "lon": "lon",
    "longitude": "lon",
    "velocity": "velocity",
    "speed": "velocity",
    "velocity kmh": "velocity",
    "heading": "heading",
    "height": "height",
    "altitude": "height",
    "long accel": "lon_accel",
    "longitudinal accel": "lon_accel",
    "lat accel": "lat_accel",
    "lateral accel": "lat_accel",
    "lat-accel": "lat_accel",
    "lat_accel": "lat_accel",
    "latacc": "lat_accel",
    "long-accel": "lon_accel",
    "long_accel": "lon_accel",
    "longacc": "lon_accel",
    "yaw rate": "yaw_rate",
    "yaw-rate": "yaw_rate",
    "yaw_rate": "yaw_rate",
    "distance": "distance",
}

# Role -> auxiliary channel name
CHANNEL_NAMES = {
    "sats": "Satellites",
    "height": "Altitude (m)",
    "lat_accel": "Lat G (Native)",
    "lon_accel": "Lon G (Native)",
    "yaw_rate": "Yaw Rate",
    "distance": "Distance",
}

# Standard VBOX column order, used when the names are not recognized
POSITIONAL_ROLES = ("sats", "time", "lat", "lon", "velocity", "heading", "height")


def parse_vbo_time(value: float) -> float:
    """hhmmss.sss when >= 100000, otherwise seconds since midnight; returns ms."""
    if value >= 100000:
        return hhmmss_to_ms(value)
    return value * 1000.0


class VboParser(LogParser):
    name = "VBO"

    def detect(self, content: Content) -> bool:
        head = decode_text(content)[:SNIFF_CHARS].lower()
        return any(marker in head for marker in ("[header]", "[column names]", "[data]"))

    def parse(self, content: Content) -> ParsedSession:
        lines = decode_text(content).splitlines()

        column_names_at = data_at = -1
        for i, line in enumerate(lines):
            marker = line.strip().lower()
            if marker == "[column names]":
                column_names_at = i
            elif marker == "[data]":
                data_at = i
                break

        if data_at < 0:
            raise ParseError("no [data] section found", self.name)

        names = []
        if 0 <= column_names_at < data_at:
            column_line = next((l for l in lines[column_names_at + 1:data_at] if l.strip()), "")
            names = column_line.split()

        roles: Dict[str, int] = {}
        extra_columns: Dict[int, str] = {}
        for idx, col in enumerate(names):
            role = KNOWN_COLUMNS.get(col.lower())
            if role is not None:
                roles.setdefault(role, idx)
            else:
                extra_columns[idx] = col

        builder = SequenceBuilder(self.name)
        clock = RelativeClock()

        for line in lines[data_at + 1:]:
            line = line.strip()
            if not line or line.startswith("["):
                continue
            values = line.split()
            if len(values) < 3:
                continue

            row_roles = roles
            if "lat" not in roles or "lon" not in roles:
                if len(values) < 5:
                    continue
                row_roles = {role: i for i, role in enumerate(POSITIONAL_ROLES) if i < len(values)}

            def value_of(role):
                idx = row_roles.get(role)
                if idx is None or idx >= len(values):
                    return float("nan")
                return parse_float(values[idx])

            clock_value = value_of("time")
            time_ms = 0.0 if math.isnan(clock_value) else parse_vbo_time(clock_value)

            channels = {name: value_of(role) for role, name in CHANNEL_NAMES.items() if role in row_roles}
            if row_roles is roles:
                for idx, col in extra_columns.items():
                    if idx < len(values):
                        channels[col] = parse_float(values[idx])

            builder.admit(
                t=clock.relative(time_ms),
                lat=parse_coordinate(values[row_roles["lat"]]),
                lon=parse_coordinate(values[row_roles["lon"]]),
                speed_mps=value_of("velocity") / constants.MPS_TO_KPH,
                heading=value_of("heading"),
                channels=channels,
            )

        return builder.build()
