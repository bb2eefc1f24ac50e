"""Candle data model and processing.

This module turns raw Bybit kline rows into the oldest-first close/high/low
series consumed by the indicator and signal modules.

Features:
- Row validation and numeric conversion
- Time-based sorting (Bybit returns newest first)
- Data quality checks with logged warnings
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Any, Sequence, Tuple

from ..utils.logging import get_scanner_logger, log_performance
from ..utils.time_utils import from_timestamp_ms


logger = get_scanner_logger(__name__)


# Bybit v5 kline row: [startTime, open, high, low, close, volume, turnover]
START_TIME_IDX = 0
HIGH_IDX = 2
LOW_IDX = 3
CLOSE_IDX = 4


class CandleDataError(ValueError):
    """Raised when a kline payload cannot be turned into a candle series."""


@dataclass(frozen=True, eq=False)
class CandleSeries:
    """Oldest-first close/high/low series of equal length."""

    closes: np.ndarray
    highs: np.ndarray
    lows: np.ndarray

    def __post_init__(self):
        # Normalise to float arrays; frozen, so go through object.__setattr__
        for name in ("closes", "highs", "lows"):
            object.__setattr__(self, name, np.asarray(getattr(self, name), dtype=float))

        if not (len(self.closes) == len(self.highs) == len(self.lows)):
            raise ValueError(
                f"Candle series lengths differ: closes={len(self.closes)}, "
                f"highs={len(self.highs)}, lows={len(self.lows)}"
            )

    @classmethod
    def from_lists(
        cls,
        closes: Sequence[float],
        highs: Sequence[float],
        lows: Sequence[float]
    ) -> "CandleSeries":
        return cls(closes=np.asarray(closes), highs=np.asarray(highs), lows=np.asarray(lows))

    @classmethod
    def empty(cls) -> "CandleSeries":
        return cls(closes=np.array([]), highs=np.array([]), lows=np.array([]))

    def __len__(self) -> int:
        return len(self.closes)

    @property
    def last_close(self) -> float:
        return float(self.closes[-1])


@dataclass
class CandleValidationResult:
    """Result of kline row validation."""

    is_valid: bool
    total_candles: int
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class CandleProcessor:
    """Kline row processor with validation.

    Handles:
    - Row shape and numeric validation
    - Sorting rows oldest first
    - Conversion into a CandleSeries
    """

    def __init__(self):
        self.logger = logger

    def validate_klines(self, rows: List[Any], symbol: str) -> CandleValidationResult:
        """Validate raw kline rows.

        Args:
            rows: Raw kline rows from the exchange
            symbol: Symbol for logging

        Returns:
            Validation result; ``is_valid`` is False when any row is unusable
        """
        warnings = []
        errors = []

        for i, row in enumerate(rows):
            if not isinstance(row, (list, tuple)) or len(row) <= CLOSE_IDX:
                errors.append(f"Malformed kline row {i}: {row!r}")
                continue

            try:
                int(row[START_TIME_IDX])
                high = float(row[HIGH_IDX])
                low = float(row[LOW_IDX])
                close = float(row[CLOSE_IDX])
            except (TypeError, ValueError) as e:
                errors.append(f"Data conversion error in kline row {i}: {e}")
                continue

            if not all(np.isfinite([high, low, close])):
                errors.append(f"Non-finite prices in kline row {i}")
                continue

            if high < low:
                warnings.append(f"High price < Low price in kline row {i}")

            if not (low <= close <= high):
                warnings.append(f"Close price outside High-Low range in kline row {i}")

        result = CandleValidationResult(
            is_valid=len(errors) == 0,
            total_candles=len(rows),
            warnings=warnings,
            errors=errors
        )

        if warnings:
            self.logger.warning(
                f"Kline data quality warnings for {symbol}",
                data={"symbol": symbol, "warnings": warnings[:5], "warnings_count": len(warnings)}
            )

        return result

    @log_performance
    def to_series(self, rows: List[Any], symbol: str) -> CandleSeries:
        """Convert raw kline rows into an oldest-first CandleSeries.

        Args:
            rows: Raw kline rows (any order)
            symbol: Symbol for logging

        Returns:
            CandleSeries sorted by candle start time

        Raises:
            CandleDataError: If any row is malformed
        """
        validation = self.validate_klines(rows, symbol)
        if not validation.is_valid:
            raise CandleDataError(
                f"Invalid kline data for {symbol}: {'; '.join(validation.errors[:3])}"
            )

        if not rows:
            return CandleSeries.empty()

        ordered: List[Tuple[int, float, float, float]] = sorted(
            (
                int(row[START_TIME_IDX]),
                float(row[CLOSE_IDX]),
                float(row[HIGH_IDX]),
                float(row[LOW_IDX]),
            )
            for row in rows
        )

        _, closes, highs, lows = zip(*ordered)

        self.logger.debug(
            f"Processed {len(ordered)} candles for {symbol}",
            data={
                "symbol": symbol,
                "candles": len(ordered),
                "first_open": from_timestamp_ms(ordered[0][0]).isoformat(),
                "last_open": from_timestamp_ms(ordered[-1][0]).isoformat()
            }
        )

        return CandleSeries.from_lists(closes, highs, lows)
