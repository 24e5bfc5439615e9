"""Utility modules for wordguard"""

from .log import open_logger, close_logger, LOG_FORMAT

__all__ = [
    "open_logger",
    "close_logger",
    "LOG_FORMAT",
]
