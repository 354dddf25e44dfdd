"""
Logging configuration for Netro.

Diagnostics always go to stderr: in listen mode stdout carries the relayed
payload and must stay clean. An optional rotating log file captures debug
detail for longer sessions.
"""

import logging
import sys
from collections import Counter
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_LOG_FILE = Path.home() / ".netro" / "logs" / "netro.log"

CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
FILE_FORMAT = (
    '%(asctime)s | %(levelname)-8s | %(name)-24s | %(funcName)-24s | '
    '%(lineno)-4d | %(message)s'
)
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    enable_file: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the "netro" logger.

    Args:
        level: Logging level name for the console (DEBUG, INFO, WARNING, ...)
        log_file: Log file path (defaults to ~/.netro/logs/netro.log)
        enable_file: Also log to a rotating file at DEBUG level
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("netro")
    console_level = getattr(logging, level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    logger.addHandler(console_handler)

    if enable_file:
        log_path = Path(log_file) if log_file else DEFAULT_LOG_FILE
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(console_level)

    logger.propagate = False
    return logger


def configure_logging(debug: bool = False, log_file: str | None = None) -> None:
    """Shortcut used by command-line flags."""
    setup_logging(
        level="DEBUG" if debug else "WARNING",
        log_file=log_file,
        enable_file=log_file is not None,
    )


class ErrorTracker:
    """Count fatal errors by type for the lifetime of the process."""

    def __init__(self):
        self.counts: Counter[str] = Counter()
        self.logger = logging.getLogger(__name__)

    def record(self, error_type: str, message: str, exception: BaseException | None = None) -> None:
        self.counts[error_type] += 1
        self.logger.debug(f"{error_type}: {message}", exc_info=exception)

    def snapshot(self) -> dict[str, int]:
        return dict(self.counts)

    def reset(self) -> None:
        self.counts.clear()


_error_tracker = ErrorTracker()


def track_error(error_type: str, message: str, exception: BaseException | None = None) -> None:
    """Record an error with the global tracker."""
    _error_tracker.record(error_type, message, exception)


def get_error_stats() -> dict[str, int]:
    """Get error counts by type."""
    return _error_tracker.snapshot()


def reset_error_stats() -> None:
    """Reset error counts."""
    _error_tracker.reset()
