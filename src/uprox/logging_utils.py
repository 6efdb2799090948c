"""
Logging setup.

Modules log through get_logger(__name__); applications (the demo, a test
session) call setup_logging once to attach a stdout handler.
"""

import logging
import sys
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", format_string: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        format_string: Custom format string (uses DEFAULT_FORMAT if None)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_string or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str) -> logging.Logger:
    """Get the logger for a module (typically called with __name__)."""
    return logging.getLogger(name)
