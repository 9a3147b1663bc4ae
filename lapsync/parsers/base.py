"""
Parser Base Classes and Shared Row Handling

Every log format is a LogParser subclass with a detect() sniffing method and
a parse() method. Parsers feed candidate rows into a SequenceBuilder, which
applies the validation shared by all formats (coordinate range, speed
ceiling, time ordering, teleportation) and assembles the ParsedSession.
"""

import csv
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Union

import numpy as np

from .. import constants
from .. import metrics
from ..exceptions import NoValidSamplesError
from ..log import get_logger
from ..models import Bounds, ParsedSession, Sample

logger = get_logger(__name__)

Content = Union[str, bytes]

SNIFF_CHARS = 3000


class LogParser(ABC):
    """One supported log format."""

    name: str = "base"
    binary: bool = False

    @abstractmethod
    def detect(self, content: Content) -> bool:
        """Return True if the content prefix looks like this format."""

    @abstractmethod
    def parse(self, content: Content) -> ParsedSession:
        """Parse the full content into a normalized session."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SequenceBuilder:
    """
    Accumulates validated samples for one file.

    Rows are admitted one at a time; a rejected row is dropped silently
    (only visible as a missing sample), so one bad line never fails a file.
    """

    def __init__(self, format_name: str, start_date: Optional[datetime] = None) -> None:
        self.format_name = format_name
        self.start_date = start_date
        self.samples: List[Sample] = []
        self._fields: Dict[str, None] = {}
        self.rejected = 0

    def __len__(self) -> int:
        return len(self.samples)

    def admit(self, t: float, lat: float, lon: float, speed_mps: float,
              heading: Optional[float] = None,
              channels: Optional[Dict[str, float]] = None) -> bool:
        """
        Validate a candidate row and append it if it passes.

        Args:
            t: Relative time in ms.
            lat, lon: Decimal-degree coordinates.
            speed_mps: Speed in m/s; non-finite values count as 0.
            heading: Optional heading in degrees, wrapped into [0, 360).
            channels: Auxiliary channels; non-finite values are dropped.

        Returns:
            True if the sample was accepted.
        """
        if t is None or not np.isfinite(t):
            self.rejected += 1
            return False
        if not metrics.is_valid_coordinate(lat, lon):
            self.rejected += 1
            return False

        if speed_mps is None or not np.isfinite(speed_mps):
            speed_mps = 0.0
        if speed_mps > constants.MAX_SPEED_MPS:
            logger.debug("{} speed ceiling: {:.1f} m/s at t={}", self.format_name, speed_mps, t)
            self.rejected += 1
            return False

        if self.samples:
            prev = self.samples[-1]
            if t < prev.t:
                self.rejected += 1
                return False
            if metrics.is_teleportation(prev.lat, prev.lon, prev.t, lat, lon, t, self.format_name):
                self.rejected += 1
                return False

        if heading is not None and np.isfinite(heading):
            heading = metrics.normalize_heading(heading)
        else:
            heading = None

        clean = {}
        for key, value in (channels or {}).items():
            if value is not None and np.isfinite(value):
                clean[key] = float(value)
                self._fields.setdefault(key, None)

        self.samples.append(Sample(
            t=float(t),
            lat=float(lat),
            lon=float(lon),
            speed_mps=float(speed_mps),
            heading=heading,
            channels=clean,
        ))
        return True

    def build(self) -> ParsedSession:
        """
        Finish the sequence.

        Headings are derived from consecutive bearings when the format
        supplied none at all.

        Raises:
            NoValidSamplesError: If no row survived validation.
        """
        if not self.samples:
            logger.warning("{}: no valid GPS samples ({} rows rejected)", self.format_name, self.rejected)
            raise NoValidSamplesError("no valid GPS data found", self.format_name)

        samples = self.samples
        if all(s.heading is None for s in samples):
            samples = _with_bearing_headings(samples)

        lats = [s.lat for s in samples]
        lons = [s.lon for s in samples]
        logger.info("{}: parsed {} samples ({} rejected)", self.format_name, len(samples), self.rejected)

        return ParsedSession(
            samples=tuple(samples),
            fields=tuple(self._fields),
            bounds=Bounds(min(lats), max(lats), min(lons), max(lons)),
            duration_ms=samples[-1].t,
            format_name=self.format_name,
            start_date=self.start_date,
        )


def _with_bearing_headings(samples: List[Sample]) -> List[Sample]:
    """Heading of each sample = bearing to the next; the last reuses the previous."""
    if len(samples) < 2:
        return samples

    headings = [
        metrics.bearing_deg(curr.lat, curr.lon, nxt.lat, nxt.lon)
        for curr, nxt in zip(samples, samples[1:])
    ]
    headings.append(headings[-1])

    return [
        Sample(t=s.t, lat=s.lat, lon=s.lon, speed_mps=s.speed_mps, heading=h, channels=s.channels)
        for s, h in zip(samples, headings)
    ]


# ============================================================================
# TEXT HELPERS
# ============================================================================

def decode_text(content: Content) -> str:
    """Decode raw bytes as UTF-8 (BOM tolerant), replacing undecodable bytes."""
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace")
    return content.lstrip("\ufeff")


def detect_delimiter(lines: List[str], candidates: str = ",;\t") -> str:
    """Return the first candidate delimiter that appears in the leading lines."""
    for line in lines[:20]:
        for delimiter in candidates:
            if delimiter in line:
                return delimiter
    return ","


def split_row(line: str, delimiter: str = ",") -> List[str]:
    """Split one delimited line, honoring double quotes, and strip each cell."""
    cells = next(csv.reader([line], delimiter=delimiter, skipinitialspace=True), [])
    return [cell.strip() for cell in cells]


def to_display_name(column_name: str) -> str:
    """exhaust_temp_c -> Exhaust Temp C"""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), column_name.replace("_", " ").strip())


# ============================================================================
# TIME & COORDINATE HELPERS
# ============================================================================

def parse_float(value: Optional[str]) -> float:
    if value is None:
        return np.nan
    try:
        return float(value)
    except ValueError:
        return np.nan


def hhmmss_to_ms(value: float) -> float:
    """Convert an hhmmss.sss clock reading to milliseconds since midnight."""
    hours = int(value // 10000)
    minutes = int((value % 10000) // 100)
    seconds = value % 100
    return (hours * 3600 + minutes * 60 + seconds) * 1000.0


class RelativeClock:
    """
    Turns absolute clock readings into ms since the first reading.

    A reading earlier than the first one is taken to have crossed midnight.
    """

    def __init__(self, wrap_ms: Optional[float] = constants.MS_PER_DAY) -> None:
        self.base_ms: Optional[float] = None
        self.wrap_ms = wrap_ms

    def relative(self, absolute_ms: float) -> float:
        if self.base_ms is None:
            self.base_ms = absolute_ms
        t = absolute_ms - self.base_ms
        if t < 0 and self.wrap_ms:
            t += self.wrap_ms
        return t


def decimal_minutes_to_degrees(value: float) -> float:
    """DDDMM.MMMM -> decimal degrees, keeping the sign."""
    sign = -1.0 if value < 0 else 1.0
    absolute = abs(value)
    degrees = np.floor(absolute / 100)
    minutes = absolute - degrees * 100
    return sign * (degrees + minutes / 60.0)


def parse_coordinate(value: Union[str, float]) -> float:
    """
    Parse a coordinate that may be decimal degrees or DDDMM.MMMM.

    Values whose magnitude cannot be decimal degrees (> 180) are read as
    degrees + decimal minutes.
    """
    num = parse_float(value) if isinstance(value, str) else float(value)
    if not np.isfinite(num):
        return np.nan
    if abs(num) <= 180:
        return num
    return decimal_minutes_to_degrees(num)


def nmea_coordinate(value: str, hemisphere: str) -> float:
    """Parse an NMEA ddmm.mmmm / dddmm.mmmm field plus N/S/E/W hemisphere."""
    num = parse_float(value)
    if not np.isfinite(num):
        return np.nan
    degrees = decimal_minutes_to_degrees(num)
    if hemisphere.upper() in ("S", "W"):
        degrees = -degrees
    return degrees
