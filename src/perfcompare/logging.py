"""Logging for perfcompare runs.

The console shows stage transitions and command output at INFO.  In
verbose mode every reachability attempt is shown too, stamped with the
wall-clock time so slow server startups can be read off the terminal.
A log file, when requested, records everything at DEBUG.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "perfcompare"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
_VERBOSE_CONSOLE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s: %(message)s"
_VERBOSE_DATE_FORMAT = "%H:%M:%S"


def _console_handler(verbose: bool, quiet: bool) -> logging.Handler:
    console = logging.StreamHandler()
    if verbose:
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter(_VERBOSE_CONSOLE_FORMAT, _VERBOSE_DATE_FORMAT))
        return console
    console.setLevel(logging.WARNING if quiet else logging.INFO)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    return console


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the root perfcompare logger.

    Calling it again replaces the handlers from the previous call; a log
    file opened earlier is closed.

    Args:
        verbose: Console at DEBUG with timestamps.
        quiet: Console at WARNING. Ignored if *verbose* is True.
        log_file: Also log everything at DEBUG to this path.  Missing
            parent directories are created.

    Returns:
        The configured root logger for perfcompare.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_console_handler(verbose, quiet))

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a named child logger, e.g. ``perfcompare.server``."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
