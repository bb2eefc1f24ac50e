"""Pytest configuration and shared fixtures."""

import pytest
from unittest.mock import Mock, AsyncMock

from ict_scanner.api.bybit_rest import BybitRestClient
from ict_scanner.data.candles import CandleSeries
from ict_scanner.utils.config import (
    Config,
    EnvironmentConfig,
    LogFilesConfig,
    LoggingConfig,
    ScannerConfig,
)


FIVE_MINUTES_MS = 5 * 60 * 1000
BASE_START_MS = 1_700_000_000_000


def generate_zigzag_closes(count: int = 201) -> list:
    """Closes rising 0.1 per candle on average: +1.2 then -1.0, repeated."""
    return [
        round(100 + 0.1 * i, 10) if i % 2 == 0 else round(101.1 + 0.1 * i, 10)
        for i in range(count)
    ]


def generate_pullback_closes() -> list:
    """Uptrend with a spike high and a sharp dip inside the last 30 candles.

    The last close (120.0) sits in the discount OTE band of the 110-140 swing.
    """
    closes = generate_zigzag_closes()
    closes[171] = 140.0
    closes[172] = 110.0
    return closes


def series_from_closes(closes: list, half_range: float = 0.5) -> CandleSeries:
    return CandleSeries.from_lists(
        closes,
        [c + half_range for c in closes],
        [c - half_range for c in closes]
    )


def series_to_kline_rows(series: CandleSeries) -> list:
    """Bybit v5 kline rows (newest first, string fields) for a series."""
    rows = []
    for i, (close, high, low) in enumerate(zip(series.closes, series.highs, series.lows)):
        rows.append([
            str(BASE_START_MS + i * FIVE_MINUTES_MS),
            str(close),
            str(high),
            str(low),
            str(close),
            "1000",
            str(close * 1000)
        ])
    return list(reversed(rows))


@pytest.fixture
def config():
    """Provide test configuration without log files."""
    return Config(
        scanner=ScannerConfig(
            symbols=["BTCUSDT", "ETHUSDT"],
            timeframes=["15m", "1h"],
            scan_interval_seconds=60,
            max_concurrent_scans=2
        ),
        logging=LoggingConfig(
            files=LogFilesConfig(main=None, error=None, debug=None, api=None)
        )
    )


@pytest.fixture
def env_config():
    """Provide test environment configuration."""
    return EnvironmentConfig(environment="test")


@pytest.fixture
def bullish_series():
    """Series that produces a LONG setup."""
    return series_from_closes(generate_pullback_closes())


@pytest.fixture
def bearish_series():
    """Mirror image of the bullish series; produces a SHORT setup."""
    return series_from_closes([240.0 - c for c in generate_pullback_closes()])


@pytest.fixture
def choppy_series():
    """Uptrend whose last close is above the swing mid; no setup."""
    return series_from_closes(generate_zigzag_closes())


@pytest.fixture
def flat_series():
    """Constant prices; neutral bias."""
    return series_from_closes([100.0] * 100)


@pytest.fixture
def kline_rows(bullish_series):
    """Raw Bybit kline rows for the bullish series."""
    return series_to_kline_rows(bullish_series)


@pytest.fixture
def mock_candle_source(bullish_series):
    """Provide mocked Bybit candle source returning the bullish series."""
    client = Mock(spec=BybitRestClient)
    client.get_candle_series = AsyncMock(return_value=bullish_series)
    client.health_check = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


@pytest.fixture
def pullback_closes():
    """Closes of the bullish series."""
    return generate_pullback_closes()


@pytest.fixture
def make_series():
    """Factory building a CandleSeries from closes."""
    return series_from_closes
