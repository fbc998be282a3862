"""
tasktracker.utility package exports.
"""

from tasktracker.utility.logging_client import (
    AppLogger,
    generate_correlation_id,
    get_correlation_id,
    logger,
    set_correlation_id,
)

__all__ = [
    "AppLogger",
    "generate_correlation_id",
    "get_correlation_id",
    "logger",
    "set_correlation_id",
]
