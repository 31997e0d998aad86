"""
Logging configuration.

Configures the ``grocery_catalog`` logger hierarchy. Output goes to stderr;
modules log through ``logging.getLogger(__name__)``.
"""
import logging
import sys
from typing import Union

LOGGER_NAME = "grocery_catalog"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate handlers if called multiple times
    logger.handlers.clear()
    logger.addHandler(handler)
    return logger
