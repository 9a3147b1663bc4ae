"""
Course and Track Helpers

Courses are built by the surrounding application, often from form fields
entered as text. These helpers turn such input into TimingLine values and
format track names for compact display.
"""

from typing import Mapping, Optional

from .exceptions import CourseError
from .models import Course, LatLon, TimingLine, Track
from .utils import safe_float, is_finite

TIMING_LINE_KEYS = ("a_lat", "a_lon", "b_lat", "b_lon")


def course_has_sectors(course: Optional[Course]) -> bool:
    """Sector timing needs both sector lines; a partial definition is ignored."""
    return course is not None and course.sector_2 is not None and course.sector_3 is not None


def parse_timing_line(a_lat, a_lon, b_lat, b_lon) -> Optional[TimingLine]:
    """
    Build a TimingLine from four coordinate values (strings or numbers).

    Returns:
        The line, or None if any value is not a finite number.
    """
    values = [safe_float(v) for v in (a_lat, a_lon, b_lat, b_lon)]
    if not all(is_finite(v) for v in values):
        return None
    return TimingLine(a=LatLon(values[0], values[1]), b=LatLon(values[2], values[3]))


def timing_line_from_mapping(fields: Optional[Mapping]) -> Optional[TimingLine]:
    if not fields:
        return None
    return parse_timing_line(*(fields.get(key) for key in TIMING_LINE_KEYS))


def build_course(name: str, start_finish: Mapping,
                 sector_2: Optional[Mapping] = None,
                 sector_3: Optional[Mapping] = None,
                 is_user_defined: bool = True) -> Course:
    """
    Build a Course from user-entered timing-line fields.

    Args:
        name: Course name.
        start_finish: Mapping with a_lat, a_lon, b_lat, b_lon.
        sector_2, sector_3: Optional mappings of the same shape. A sector line
            that does not parse is dropped.
        is_user_defined: Whether the course came from the user rather than
            the bundled track list.

    Raises:
        CourseError: If the start/finish line does not parse.
    """
    line = timing_line_from_mapping(start_finish)
    if line is None:
        raise CourseError(f"course {name!r}: start/finish line needs four numeric coordinates")
    return Course(
        name=name,
        start_finish=line,
        sector_2=timing_line_from_mapping(sector_2),
        sector_3=timing_line_from_mapping(sector_3),
        is_user_defined=is_user_defined,
    )


def abbreviate_track_name(name: str) -> str:
    """
    Short display form of a track name.

    "Orlando Kart Center" -> "OKC", "Bushnell" -> "BUSH", "Ocala" -> "OCAL".
    """
    words = name.split()
    if not words:
        return ""
    if len(words) > 1:
        return "".join(word[0].upper() for word in words)
    return words[0][:4].upper()


def track_display_name(track: Track) -> str:
    return track.short_name or abbreviate_track_name(track.name)
