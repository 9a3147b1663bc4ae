"""Centralized logging configuration using loguru."""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# Replace the default handler with the project format
logger.remove()
_console_sink_id = logger.add(sys.stderr, level="INFO", format=_FORMAT, colorize=True)


def configure_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Reconfigure the console level and optionally add a rotating file sink.

    Args:
        level: Minimum level for the console sink.
        log_file: Optional path of a log file to write at DEBUG level.
    """
    global _console_sink_id
    logger.remove(_console_sink_id)
    _console_sink_id = logger.add(sys.stderr, level=level, format=_FORMAT, colorize=True)

    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="10 days",
            level="DEBUG",
            format=_FILE_FORMAT,
            enqueue=True,
        )


def get_logger(name: Optional[str] = None):
    """Get a logger instance bound to the given module name.

    Args:
        name: Module name for the logger (usually __name__)

    Returns:
        Configured logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger
