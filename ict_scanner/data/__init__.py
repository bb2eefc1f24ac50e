"""Data processing and indicator modules.

This package turns exchange klines into candle series and provides the
technical indicators used by the signal rules.
"""

from .candles import CandleDataError, CandleProcessor, CandleSeries
from .indicators import avg_range, ema, rsi

__all__ = [
    "CandleDataError",
    "CandleProcessor",
    "CandleSeries",
    "avg_range",
    "ema",
    "rsi",
]
