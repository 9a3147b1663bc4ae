"""Exceptions raised by the lapsync core."""

from typing import Optional


class LapSyncError(Exception):
    """Base exception for all lapsync errors."""


class ParseError(LapSyncError):
    """Raised when a log file cannot be turned into a sample sequence."""

    def __init__(self, message: str, format_name: Optional[str] = None) -> None:
        self.format_name = format_name
        prefix = f"{format_name}: " if format_name else ""
        super().__init__(f"{prefix}{message}")


class UnsupportedFormatError(ParseError):
    """Raised when no parser recognizes the content."""


class NoValidSamplesError(ParseError):
    """Raised when a recognized file has no rows left after validation."""


class CourseError(LapSyncError):
    """Raised when course geometry cannot be built from user input."""


class VideoSyncError(LapSyncError):
    """Raised on invalid use of the video sync engine."""


class StorageError(LapSyncError):
    """Raised when the sync-record store cannot read or write its file."""
