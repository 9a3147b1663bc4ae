"""
Log Format Registry

Parsers are tried in order, most specific signature first; the generic
columnar parser is the last resort. Adding a format means adding a
LogParser subclass and listing it here.
"""

from typing import Optional

from ..exceptions import UnsupportedFormatError
from ..log import get_logger
from ..models import ParsedSession
from .aim import AimCsvParser
from .alfano import AlfanoParser
from .base import Content, LogParser, SequenceBuilder, decode_text
from .dove import DoveParser
from .generic import GenericCsvParser
from .motec import MotecCsvParser, MotecLdParser
from .nmea import NmeaParser
from .vbo import VboParser

logger = get_logger(__name__)

PARSERS = (
    MotecLdParser(),
    VboParser(),
    MotecCsvParser(),
    AimCsvParser(),
    DoveParser(),
    AlfanoParser(),
    NmeaParser(),
    GenericCsvParser(),
)


def detect_format(content: Content) -> Optional[LogParser]:
    """
    Find the parser for some raw log content.

    Binary parsers only see bytes input; text parsers see the decoded text.

    Returns:
        The first matching parser, or None.
    """
    text = None
    for parser in PARSERS:
        if parser.binary:
            if isinstance(content, bytes) and parser.detect(content):
                return parser
            continue
        if text is None:
            text = decode_text(content)
        if parser.detect(text):
            return parser
    return None


def parse_log(content: Content, filename: Optional[str] = None) -> ParsedSession:
    """
    Detect the format of a log and parse it.

    Args:
        content: Raw file bytes or already-decoded text.
        filename: Optional name, only used for log messages.

    Raises:
        UnsupportedFormatError: No parser recognized the content.
        ParseError: The recognized parser could not produce samples.
    """
    parser = detect_format(content)
    if parser is None:
        logger.warning("Unrecognized log format: {}", filename or "<content>")
        raise UnsupportedFormatError("unrecognized log format")

    logger.info("Parsing {} as {}", filename or "<content>", parser.name)
    payload = content if parser.binary else decode_text(content)
    return parser.parse(payload)


__all__ = [
    "PARSERS",
    "LogParser",
    "SequenceBuilder",
    "detect_format",
    "parse_log",
    "AimCsvParser",
    "AlfanoParser",
    "DoveParser",
    "GenericCsvParser",
    "MotecCsvParser",
    "MotecLdParser",
    "NmeaParser",
    "VboParser",
]
