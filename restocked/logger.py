"""
Logging configuration for extraction and tracking.
"""

import logging
import sys

from .config import config

# Create logger
logger = logging.getLogger('restocked')
logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

# Console handler with formatting
if not logger.handlers:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-5s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    )
    console.setFormatter(formatter)

    logger.addHandler(console)


# Strategy-specific loggers
def get_strategy_logger(name):
    """Get a child logger for a specific strategy."""
    return logger.getChild(name)


def get_service_logger(name):
    """Get a child logger for a service (tracking, ingestion, alerts)."""
    return logger.getChild(name)
