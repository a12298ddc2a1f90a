"""Logging configuration helpers."""

from __future__ import annotations

import logging

LOGGER_NAME = "recomp"


def configure_logging(level: int | str = logging.WARNING) -> None:
    """Configure application logging with a single stream handler.

    Args:
        level: Logging level for the ``recomp`` logger (name or number)
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
