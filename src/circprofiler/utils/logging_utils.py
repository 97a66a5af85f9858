"""Logging utilities for the circprofiler toolkit."""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL_ENV = "CIRCPROFILER_LOG_LEVEL"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with standard configuration.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (DEBUG, INFO, WARNING, ERROR); defaults to
            $CIRCPROFILER_LOG_LEVEL, then INFO

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:  # Avoid duplicate handlers
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    level = level or os.getenv(LOG_LEVEL_ENV) or "INFO"
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown logging level: {level}")
    logger.setLevel(resolved)

    return logger
