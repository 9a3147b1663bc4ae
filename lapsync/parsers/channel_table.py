"""
Shared reader for "channel table" CSV exports.

MoTeC i2 and AiM RaceStudio both export a quoted metadata block, then a
channel-name row starting with Time, a units row, and the data rows. The
subclasses only differ in detection and in the channel names they use.
"""

import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .. import constants
from ..exceptions import ParseError
from ..log import get_logger
from ..models import ParsedSession
from ..utils import clamp
from .base import (
    Content,
    LogParser,
    RelativeClock,
    SequenceBuilder,
    decode_text,
    parse_float,
    split_row,
)

logger = get_logger(__name__)


def speed_factor(unit: str) -> float:
    """Multiplier taking a speed in the given unit to m/s (km/h when unknown)."""
    unit = unit.lower()
    if "mph" in unit:
        return constants.MPH_TO_MPS
    if "m/s" in unit:
        return 1.0
    return 1.0 / constants.MPS_TO_KPH


def native_g(value: float) -> float:
    # Magnitudes above 5 are m/s^2
    if abs(value) > 5:
        value = value / constants.GRAVITY_MPS2
    return clamp(value, -5.0, 5.0)


def find_column(names: Sequence[str], aliases: Sequence[str]) -> int:
    for alias in aliases:
        if alias in names:
            return names.index(alias)
    return -1


class ChannelTableParser(LogParser):
    """Base for CSV exports laid out as metadata / channel names / units / data."""

    header_scan_lines = 40
    date_key = "date"
    time_key = "time"

    time_aliases: Tuple[str, ...] = ("time", "t")
    lat_aliases: Tuple[str, ...] = ()
    lon_aliases: Tuple[str, ...] = ()
    speed_aliases: Tuple[str, ...] = ()
    heading_aliases: Tuple[str, ...] = ()
    lat_g_aliases: Tuple[str, ...] = ()
    lon_g_aliases: Tuple[str, ...] = ()
    # channel display name -> lowercase aliases
    channel_aliases: Dict[str, Tuple[str, ...]] = {}

    def _find_header(self, lines: List[str]) -> int:
        for i, line in enumerate(lines[:self.header_scan_lines]):
            cells = split_row(line)
            if cells and cells[0].lower() == "time" and len(cells) >= 3:
                return i
        return -1

    def parse(self, content: Content) -> ParsedSession:
        lines = decode_text(content).splitlines()

        header_at = self._find_header(lines)
        if header_at < 0:
            raise ParseError("could not find the channel header row", self.name)

        raw_names = split_row(lines[header_at])
        names = [n.lower() for n in raw_names]
        units = split_row(lines[header_at + 1]) if header_at + 1 < len(lines) else []

        time_col = find_column(names, self.time_aliases)
        lat_col = find_column(names, self.lat_aliases)
        lon_col = find_column(names, self.lon_aliases)
        speed_col = find_column(names, self.speed_aliases)
        heading_col = find_column(names, self.heading_aliases)
        lat_g_col = find_column(names, self.lat_g_aliases)
        lon_g_col = find_column(names, self.lon_g_aliases)

        if lat_col < 0 or lon_col < 0:
            raise ParseError("missing GPS latitude/longitude channels", self.name)

        to_mps = speed_factor(units[speed_col] if 0 <= speed_col < len(units) else "")

        channel_cols: Dict[str, int] = {}
        for display, aliases in self.channel_aliases.items():
            col = find_column(names, aliases)
            if col >= 0:
                channel_cols[display] = col

        claimed = {time_col, lat_col, lon_col, speed_col, heading_col, lat_g_col, lon_g_col}
        claimed.update(channel_cols.values())
        for col, raw_name in enumerate(raw_names):
            if col not in claimed and raw_name:
                channel_cols.setdefault(raw_name, col)

        builder = SequenceBuilder(self.name, start_date=self.read_start_date(lines, header_at))
        clock = RelativeClock(wrap_ms=None)

        for line in lines[header_at + 2:]:
            if not line.strip():
                continue
            values = split_row(line)

            def column(col: int) -> float:
                if col < 0 or col >= len(values):
                    return float("nan")
                return parse_float(values[col])

            time_s = column(time_col)
            if math.isnan(time_s):
                # Repeated unit rows or trailing metadata
                continue

            channels = {name: column(col) for name, col in channel_cols.items()}
            for col, name in ((lat_g_col, "Lat G (Native)"), (lon_g_col, "Lon G (Native)")):
                raw = column(col)
                if not math.isnan(raw):
                    channels[name] = native_g(raw)

            builder.admit(
                t=clock.relative(time_s * 1000.0),
                lat=column(lat_col),
                lon=column(lon_col),
                speed_mps=column(speed_col) * to_mps,
                heading=column(heading_col),
                channels=channels,
            )

        return builder.build()

    def read_start_date(self, lines: List[str], header_at: int) -> Optional[datetime]:
        """Absolute session start from the metadata block, when it has one."""
        date = self._metadata_value(lines[:header_at], self.date_key)
        clock = self._metadata_value(lines[:header_at], self.time_key)
        if not date:
            return None
        try:
            stamp = pd.to_datetime(f"{date} {clock or ''}".strip(), dayfirst=True)
        except (ValueError, OverflowError):
            logger.debug("{}: unreadable start date {!r} {!r}", self.name, date, clock)
            return None
        return stamp.to_pydatetime()

    @staticmethod
    def _metadata_value(lines: List[str], key: str) -> Optional[str]:
        for line in lines:
            cells = split_row(line)
            if len(cells) >= 2 and cells[0].lower() == key:
                return cells[1]
        return None
