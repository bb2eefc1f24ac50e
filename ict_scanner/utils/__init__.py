"""Utility modules for the ICT signal scanner."""

from .config import Config, load_config
from .logging import setup_logging, get_logger
from .time_utils import (
    get_utc_now,
    to_utc,
    format_utc_time,
    format_duration,
)

__all__ = [
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    "get_utc_now",
    "to_utc",
    "format_utc_time",
    "format_duration",
]
