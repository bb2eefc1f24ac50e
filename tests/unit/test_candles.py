"""Unit tests for candle series and kline processing."""

import numpy as np
import pytest

from ict_scanner.data.candles import CandleDataError, CandleProcessor, CandleSeries


def make_row(start_ms, close, high=None, low=None):
    high = close + 1 if high is None else high
    low = close - 1 if low is None else low
    return [str(start_ms), str(close), str(high), str(low), str(close), "10", "100"]


@pytest.mark.unit
class TestCandleSeries:
    """Test CandleSeries invariants."""

    def test_rejects_unequal_lengths(self):
        with pytest.raises(ValueError):
            CandleSeries.from_lists([1.0, 2.0], [1.0], [1.0, 2.0])

    def test_empty_is_valid(self):
        series = CandleSeries.empty()
        assert len(series) == 0

    def test_converts_to_float_arrays(self):
        series = CandleSeries.from_lists([1, 2], [2, 3], [0, 1])

        assert isinstance(series.closes, np.ndarray)
        assert series.closes.dtype == float
        assert series.last_close == 2.0


@pytest.mark.unit
class TestCandleProcessor:
    """Test kline row processing."""

    def setup_method(self):
        """Set up test fixtures."""
        self.processor = CandleProcessor()

    def test_sorts_oldest_first(self):
        rows = [make_row(3000, 13.0), make_row(1000, 11.0), make_row(2000, 12.0)]

        series = self.processor.to_series(rows, "BTCUSDT")

        np.testing.assert_allclose(series.closes, [11.0, 12.0, 13.0])
        np.testing.assert_allclose(series.highs, [12.0, 13.0, 14.0])
        np.testing.assert_allclose(series.lows, [10.0, 11.0, 12.0])

    def test_bybit_rows_round_trip_fixture(self, kline_rows, bullish_series):
        series = self.processor.to_series(kline_rows, "BTCUSDT")

        assert len(series) == len(bullish_series)
        np.testing.assert_allclose(series.closes, bullish_series.closes)

    def test_empty_rows(self):
        assert len(self.processor.to_series([], "BTCUSDT")) == 0

    def test_short_row_is_invalid(self):
        rows = [make_row(1000, 11.0), ["2000", "1", "2"]]

        with pytest.raises(CandleDataError):
            self.processor.to_series(rows, "BTCUSDT")

    def test_non_numeric_field_is_invalid(self):
        rows = [["1000", "1", "abc", "1", "1", "1", "1"]]

        result = self.processor.validate_klines(rows, "BTCUSDT")

        assert not result.is_valid
        assert len(result.errors) == 1

    def test_non_finite_price_is_invalid(self):
        rows = [["1000", "1", "nan", "1", "1", "1", "1"]]
        assert not self.processor.validate_klines(rows, "BTCUSDT").is_valid

    def test_quality_warnings_do_not_invalidate(self):
        rows = [make_row(1000, 20.0, high=15.0, low=10.0)]

        result = self.processor.validate_klines(rows, "BTCUSDT")

        assert result.is_valid
        assert result.total_candles == 1
        assert len(result.warnings) == 1
