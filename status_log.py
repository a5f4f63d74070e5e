"""One-line status messages for the console."""

import logging
from typing import Optional


def format_status(message: str, success: Optional[bool] = None) -> str:
    """Append 'Succeeded' or 'Failed' when the outcome of an action is known."""
    if success is None:
        return message
    return f"{message.rstrip()} {'Succeeded' if success else 'Failed'}"


def log_status(logger: logging.Logger, message: str, success: Optional[bool] = None):
    """Log a status line. Failures are logged at WARNING."""
    level = logging.WARNING if success is False else logging.INFO
    logger.log(level, format_status(message, success))
