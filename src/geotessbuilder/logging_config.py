"""Logging setup for the ``geotessbuilder`` namespace.

The library itself only creates module loggers; handlers are installed by
the command-line entry point (or by an application) through
:func:`setup_logging`.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOGGER_NAME = "geotessbuilder"


def level_for_verbosity(verbosity: int) -> int:
    """Map the ``verbosity`` property onto a logging level."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the package logger with a stdout handler and an optional file handler."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # avoid duplicate output when called more than once
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("logging initialised at level %s", logging.getLevelName(level))
    return logger
