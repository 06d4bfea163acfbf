"""Shared utilities for proxim8."""

from proxim8.core.utils.logging import configure_logging, get_logger
from proxim8.core.utils.time import utc_now

__all__ = [
    "configure_logging",
    "get_logger",
    "utc_now",
]
