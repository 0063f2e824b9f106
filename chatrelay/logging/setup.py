"""Logging configuration for the relay."""

import logging
import sys

LOGGER_NAME = "chatrelay"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Set up the relay logger with a single stdout handler.

    Calling this more than once replaces the handler instead of stacking
    duplicates, so app factories and tests can call it freely.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    # Records also reach root handlers
    logger.propagate = True

    return logger
