"""
NMEA 0183 Sentence Log Parser

Handles raw GPS receiver logs: RMC sentences provide the fixes (time,
position, speed over ground, course, date) and GGA sentences with the same
UTC time contribute satellite count, HDOP and altitude.
"""

import math
import re
from datetime import datetime, timezone
from functools import reduce
from typing import Dict, Optional

from .. import constants
from ..log import get_logger
from ..models import ParsedSession
from .base import (
    SNIFF_CHARS,
    Content,
    LogParser,
    RelativeClock,
    SequenceBuilder,
    decode_text,
    hhmmss_to_ms,
    nmea_coordinate,
    parse_float,
)

logger = get_logger(__name__)

_SENTENCE_RE = re.compile(r"\$[A-Z]{2}(RMC|GGA),")


def checksum_ok(sentence: str) -> bool:
    """
    Validate the optional *hh checksum of a sentence starting with '$'.

    Sentences without a checksum are accepted.
    """
    if "*" not in sentence:
        return True
    body, _, checksum = sentence[1:].partition("*")
    try:
        expected = int(checksum[:2], 16)
    except ValueError:
        return False
    return reduce(lambda acc, ch: acc ^ ord(ch), body, 0) == expected


def _strip_checksum(sentence: str) -> str:
    return sentence.split("*", 1)[0]


def _parse_date(ddmmyy: str, time_field: str) -> Optional[datetime]:
    try:
        day, month, year = int(ddmmyy[0:2]), int(ddmmyy[2:4]), 2000 + int(ddmmyy[4:6])
        hours, minutes = int(time_field[0:2]), int(time_field[2:4])
        seconds = float(time_field[4:])
        return datetime(year, month, day, hours, minutes, int(seconds),
                        int(round((seconds % 1) * 1e6)) % 1000000, tzinfo=timezone.utc)
    except (ValueError, IndexError):
        return None


class NmeaParser(LogParser):
    """Raw NMEA 0183 logs ($GPRMC / $GNRMC with optional $xxGGA)."""

    name = "NMEA"

    def detect(self, content: Content) -> bool:
        return _SENTENCE_RE.search(decode_text(content)[:SNIFF_CHARS]) is not None

    def parse(self, content: Content) -> ParsedSession:
        sentences = []
        for line in decode_text(content).splitlines():
            start = line.find("$")
            if start < 0:
                continue
            sentence = line[start:].strip()
            if not checksum_ok(sentence):
                logger.debug("NMEA checksum mismatch: {}", sentence)
                continue
            fields = _strip_checksum(sentence).split(",")
            if len(fields[0]) < 6:
                continue
            sentences.append((fields[0][3:6], fields))

        # GGA fixes keyed by their UTC time field, joined onto RMC below
        gga_by_time: Dict[str, Dict[str, float]] = {}
        for kind, fields in sentences:
            if kind != "GGA" or len(fields) < 10:
                continue
            gga_by_time[fields[1]] = {
                "Satellites": parse_float(fields[7]),
                "HDOP": parse_float(fields[8]),
                "Altitude (m)": parse_float(fields[9]),
            }

        builder = SequenceBuilder(self.name)
        clock = RelativeClock()

        for kind, fields in sentences:
            if kind != "RMC" or len(fields) < 10:
                continue
            time_field, status = fields[1], fields[2]
            if status != "A":
                continue

            clock_value = parse_float(time_field)
            if math.isnan(clock_value):
                continue

            if builder.start_date is None and len(fields) > 9:
                builder.start_date = _parse_date(fields[9], time_field)

            lat = nmea_coordinate(fields[3], fields[4])
            lon = nmea_coordinate(fields[5], fields[6])
            speed_mps = parse_float(fields[7]) * constants.KNOTS_TO_MPS
            heading = parse_float(fields[8])

            builder.admit(
                t=clock.relative(hhmmss_to_ms(clock_value)),
                lat=lat,
                lon=lon,
                speed_mps=speed_mps,
                heading=heading,
                channels=gga_by_time.get(time_field),
            )

        return builder.build()
