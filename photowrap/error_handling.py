"""
Logging setup and the exception hierarchy shared by every PhotoWrap stage.
"""

import logging
import sys
from typing import Optional, TextIO
from pathlib import Path

from photowrap.config import LOG_FILE, LOG_LEVEL

LOGGER_NAME = 'photowrap'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None,
                  stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the package logger, replacing any handlers it already has.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also append records to this file when given
        stream: Console stream, stdout unless told otherwise
    """
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(getattr(logging, log_level.upper()))
    package_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    return package_logger

def redirect_console(stream: TextIO):
    """Point the stdout console handler at ``stream``; other handlers are left alone."""
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        if type(handler) is logging.StreamHandler and handler.stream is sys.stdout:
            handler.setStream(stream)

logger = setup_logging(LOG_LEVEL, LOG_FILE or None)

class PhotoWrapError(Exception):
    """Base class for errors raised by PhotoWrap."""

class NoAssetsFoundError(PhotoWrapError):
    """The requested time range holds no photos; the run stops before anything is stored."""

    def __init__(self, message: str = "No photos found in this time range"):
        super().__init__(message)

class PhotoLibraryError(PhotoWrapError):
    """The photo library could not be listed or an asset could not be read."""

class DatabaseError(PhotoWrapError):
    """A run store operation failed."""

class ClusteringError(PhotoWrapError):
    """Place clustering was called with unusable input."""

class GeocodingError(PhotoWrapError):
    """A reverse geocoding lookup failed."""

def handle_error(error: Exception, context: str = "", raise_error: bool = True):
    """
    Log ``error`` with its traceback, then re-raise it unless told not to.

    Args:
        error: The exception being handled
        context: Stage or operation the error came from
        raise_error: Re-raise after logging
    """
    where = f" in {context}" if context else ""
    logger.error(f"{type(error).__name__}{where}: {error}", exc_info=error)

    if raise_error:
        raise error
