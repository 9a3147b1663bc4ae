"""
Dove CSV Parser

Plain CSV with a header row, Unix-millisecond timestamps and speed in mph.
Required columns: timestamp, lat, lng, speed_mph. Every other numeric column
is kept as an auxiliary channel.
"""

import math
from datetime import datetime, timezone

from .. import constants
from .. import metrics
from ..exceptions import ParseError
from ..models import ParsedSession
from .base import (
    Content,
    LogParser,
    SequenceBuilder,
    decode_text,
    parse_float,
    to_display_name,
)

REQUIRED_HEADERS = ("timestamp", "lat", "lng", "speed_mph")

# Column -> channel name for the columns Dove always writes
KNOWN_CHANNELS = {
    "sats": "Satellites",
    "hdop": "HDOP",
    "altitude_m": "Altitude",
    "rpm": "RPM",
    "exhaust_temp_c": "EGT",
    "water_temp_c": "Water Temp",
}

# Unix ms between 2017 and 2033
MIN_TIMESTAMP_MS = 1.5e12
MAX_TIMESTAMP_MS = 2.0e12


class DoveParser(LogParser):
    name = "Dove"

    def detect(self, content: Content) -> bool:
        lines = decode_text(content)[:4096].splitlines()
        if len(lines) < 2:
            return False
        headers = [h.strip() for h in lines[0].lower().split(",")]
        if not all(h in headers for h in REQUIRED_HEADERS):
            return False
        if any(h.startswith("gps_") for h in headers):
            return False

        first_row = lines[1].split(",")
        ts_idx = headers.index("timestamp")
        if ts_idx >= len(first_row):
            return False
        timestamp = parse_float(first_row[ts_idx])
        return MIN_TIMESTAMP_MS <= timestamp <= MAX_TIMESTAMP_MS

    def parse(self, content: Content) -> ParsedSession:
        lines = decode_text(content).splitlines()
        if len(lines) < 2:
            raise ParseError("file must have a header and data rows", self.name)

        headers = [h.strip() for h in lines[0].lower().split(",")]
        index = {h: i for i, h in enumerate(headers)}
        for required in REQUIRED_HEADERS:
            if required not in index:
                raise ParseError(f"missing required column: {required}", self.name)

        channel_columns = {
            i: KNOWN_CHANNELS.get(h, to_display_name(h))
            for i, h in enumerate(headers)
            if h not in REQUIRED_HEADERS and h
        }

        builder = SequenceBuilder(self.name)
        base_ts = None

        for line in lines[1:]:
            line = line.strip()
            if not line:
                continue
            values = [v.strip() for v in line.split(",")]
            if len(values) < len(headers):
                continue

            timestamp = parse_float(values[index["timestamp"]])
            speed_mph = parse_float(values[index["speed_mph"]])
            if math.isnan(timestamp) or math.isnan(speed_mph):
                continue

            lat = parse_float(values[index["lat"]])
            lon = parse_float(values[index["lng"]])
            if not metrics.is_valid_coordinate(lat, lon):
                continue
            if base_ts is None:
                base_ts = timestamp
                builder.start_date = datetime.fromtimestamp(timestamp / 1000.0, tz=timezone.utc)

            channels = {name: parse_float(values[i]) for i, name in channel_columns.items()}
            if channels.get("RPM", 0.0) < 0:
                del channels["RPM"]

            builder.admit(
                t=timestamp - base_ts,
                lat=lat,
                lon=lon,
                speed_mps=speed_mph * constants.MPH_TO_MPS,
                channels=channels,
            )

        return builder.build()
