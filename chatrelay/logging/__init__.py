"""Logging module for the relay."""

from .setup import LOG_DATE_FORMAT, LOG_FORMAT, LOGGER_NAME, setup_logging

__all__ = [
    "LOGGER_NAME",
    "LOG_FORMAT",
    "LOG_DATE_FORMAT",
    "setup_logging",
]
