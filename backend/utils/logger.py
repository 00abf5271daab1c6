"""Logging setup shared by the repository, services and HTTP layer."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from backend.utils.config import Settings, get_settings


# Concurrent writers race for the same table windows; the thread name tells
# their lines apart.
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"

_LOGGER_INITIALIZED = False


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Install the stdout handler once and apply the configured level.

    Later calls only change the level, and only when ``settings`` is given,
    so an app built with its own settings can override the import-time level.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED and settings is None:
        return

    level = (settings or get_settings()).log_level.upper()
    if not _LOGGER_INITIALIZED:
        logging.basicConfig(format=LOG_FORMAT, stream=sys.stdout)
        _LOGGER_INITIALIZED = True
    logging.getLogger().setLevel(level)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
