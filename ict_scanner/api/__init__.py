"""Bybit API client modules.

This package provides the public REST client used as the scanner's candle
source.
"""

from .bybit_rest import (
    BybitRestClient,
    BybitRateLimitError,
    DataUnavailableError,
    map_timeframe_to_interval,
    normalize_symbol,
)

__all__ = [
    "BybitRestClient",
    "BybitRateLimitError",
    "DataUnavailableError",
    "map_timeframe_to_interval",
    "normalize_symbol",
]
