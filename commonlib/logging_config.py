"""Logging setup shared by the catalog library and its command line."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAMESPACES = ("linesheet", "commonlib")


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure the package loggers with a console handler.

    Args:
        level: Logging constant or its name (``"DEBUG"``).
        log_file: Optional path that also receives every record.
        stream: Console stream, stdout by default.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    for name in LOGGER_NAMESPACES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        # Drop handlers from an earlier call so records are not duplicated.
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)
