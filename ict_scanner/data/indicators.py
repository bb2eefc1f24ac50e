"""Technical indicators used by the signal rules.

Indicators implemented:
- EMA: raw-seeded exponential moving average, k = 2/(period+1)
- RSI: Wilder-smoothed relative strength index, NaN during warm-up
- Average range: mean(high - low) over the most recent candles

All functions take ordered, oldest-first series and return values aligned
with their input.
"""

import numpy as np
import pandas as pd
from typing import Sequence, Union


ArrayLike = Union[Sequence[float], np.ndarray, pd.Series]

# RS used when a window has no losses, giving RSI = 100 - 100/101 rather than 100
ZERO_LOSS_RS = 100.0


def _as_array(values: ArrayLike) -> np.ndarray:
    if isinstance(values, pd.Series):
        values = values.to_numpy()
    return np.asarray(values, dtype=float)


def ema(values: ArrayLike, period: int) -> np.ndarray:
    """Calculate Exponential Moving Average.

    The first output equals the first input (no SMA seed), then
    ``out[i] = x[i] * k + out[i-1] * (1 - k)`` with ``k = 2 / (period + 1)``.

    Args:
        values: Price series, oldest first
        period: EMA period

    Returns:
        EMA values array of the same length as ``values``
    """
    prices = _as_array(values)

    if len(prices) == 0:
        return np.array([], dtype=float)

    # adjust=False is exactly the recursive form seeded with the first value
    return pd.Series(prices).ewm(span=period, adjust=False).mean().to_numpy()


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    rs = ZERO_LOSS_RS if avg_loss == 0 else avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi(values: ArrayLike, period: int = 14) -> np.ndarray:
    """Calculate Relative Strength Index with Wilder smoothing.

    The first ``period`` positions are NaN. When the series is not longer
    than ``period`` an empty array is returned.

    Args:
        values: Price series, oldest first
        period: RSI period (default: 14)

    Returns:
        RSI values array aligned with ``values``
    """
    prices = _as_array(values)

    if len(prices) <= period:
        return np.array([], dtype=float)

    deltas = np.diff(prices)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(np.sum(gains[:period])) / period
    avg_loss = float(np.sum(losses[:period])) / period

    result = np.full(len(prices), np.nan)
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period + 1, len(prices)):
        # deltas[i - 1] is the move from prices[i - 1] to prices[i]
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        result[i] = _rsi_value(avg_gain, avg_loss)

    return result


def avg_range(highs: ArrayLike, lows: ArrayLike, period: int = 20) -> float:
    """Calculate the average candle range.

    Mean of ``high - low`` over the last ``period`` candles, or over every
    candle when fewer are available.

    Args:
        highs: High price series
        lows: Low price series
        period: Lookback window (default: 20)

    Returns:
        Average range, 0.0 for empty input
    """
    high_prices = _as_array(highs)
    low_prices = _as_array(lows)

    if len(high_prices) != len(low_prices):
        raise ValueError("High and low series must have same length")

    if len(high_prices) == 0:
        return 0.0

    ranges = high_prices[-period:] - low_prices[-period:]
    return float(np.mean(ranges))


def last_value(values: np.ndarray) -> float:
    """Return the last element of an indicator series, NaN when empty."""
    if len(values) == 0:
        return float('nan')
    return float(values[-1])
