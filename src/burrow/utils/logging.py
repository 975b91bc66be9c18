"""Logging helpers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..config import Config

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"

_LOGGING_CONFIGURED = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
        _LOGGING_CONFIGURED = True
    return logging.getLogger(name)


def configure_logging(config: "Config") -> logging.Logger:
    """Apply the debug flag and optional log file from ``config``."""
    logger = get_logger("burrow")
    logger.setLevel(logging.DEBUG if config.debug else logging.WARNING)
    if config.logfile:
        handler = logging.FileHandler(config.logfile, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
