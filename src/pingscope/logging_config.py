"""
Logging configuration for PingScope.

Console output goes to stderr so it never interleaves with the rich
tables printed on stdout; an optional rotating file log keeps the
per-probe DEBUG records.
"""

import logging
import sys
from collections import Counter
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


LOGGER_NAME = "pingscope"
LOG_PATH = Path.home() / ".pingscope" / "logs" / "pingscope.log"

# httpx logs every request at INFO, one line per traced hop
NOISY_LOGGERS = ("httpx", "httpcore")

logger = logging.getLogger(__name__)


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    enable_console: bool = True,
    enable_file: bool = False,
) -> logging.Logger:
    """
    Set up the package logger.

    Args:
        level: Console logging level (DEBUG, INFO, WARNING, ...)
        log_file: Log file path, defaults to ~/.pingscope/logs/pingscope.log
        enable_console: Log to stderr
        enable_file: Also log everything at DEBUG to a rotating file
    """
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(logging.DEBUG if enable_file else getattr(logging, level.upper()))
    package_logger.handlers.clear()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(logging.Formatter(
            fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%H:%M:%S',
        ))
        package_logger.addHandler(console_handler)

    if enable_file:
        log_path = Path(log_file) if log_file else LOG_PATH
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(log_path, maxBytes=5242880, backupCount=3,
                                           encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-24s | %(funcName)-18s | '
                '%(lineno)-4d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        package_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.propagate = False
    return package_logger


def configure_logging(debug: bool = False, log_to_file: bool = False) -> None:
    """
    Quick logging configuration used by the CLI.

    Without --debug only warnings reach the console, so the
    progressive trace table stays readable.
    """
    setup_logging(
        level="DEBUG" if debug else "WARNING",
        enable_console=True,
        enable_file=log_to_file,
    )


# Failure counts by kind: scan_input, geo_lookup
_error_counts: Counter = Counter()


def track_error(error_type: str, message: str, context: dict[str, Any] | None = None) -> None:
    """Count a diagnostic failure and log it."""
    _error_counts[error_type] += 1
    if context:
        logger.warning(f"{error_type}: {message} | Context: {context}")
    else:
        logger.warning(f"{error_type}: {message}")


def get_error_stats() -> dict[str, int]:
    return dict(_error_counts)


def reset_error_stats() -> None:
    _error_counts.clear()
