"""Logging setup shared by functions, services and the CLI."""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger writing to stdout.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Logger with a single stdout handler at LOG_LEVEL (default INFO)
    """
    logger = logging.getLogger(name or "pillmate")

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_level())
        # configure_logging() adds a root handler; do not print twice
        logger.propagate = False

    return logger


def configure_logging():
    """Root logger for the functions runtime and third-party libraries."""
    logging.basicConfig(level=_level(), format=LOG_FORMAT, datefmt=DATE_FORMAT)
