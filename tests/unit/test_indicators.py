"""Unit tests for technical indicators."""

import math

import numpy as np
import pandas as pd
import pytest

from ict_scanner.data.indicators import avg_range, ema, last_value, rsi


ZERO_LOSS_RSI = 100 - 100 / 101


@pytest.mark.unit
class TestEMA:
    """Test exponential moving average."""

    def test_seeded_with_first_value(self):
        result = ema([1.0, 2.0, 3.0], period=3)

        # k = 0.5
        np.testing.assert_allclose(result, [1.0, 1.5, 2.25])

    def test_length_matches_input(self):
        values = list(range(1, 51))
        assert len(ema(values, 20)) == len(values)

    def test_empty_input(self):
        assert len(ema([], 20)) == 0

    def test_accepts_pandas_series(self):
        result = ema(pd.Series([10.0, 10.0, 10.0]), period=5)
        np.testing.assert_allclose(result, [10.0, 10.0, 10.0])

    def test_matches_recurrence(self):
        values = [3.0, 7.0, 4.0, 9.0, 1.0, 6.0]
        period = 4
        k = 2 / (period + 1)

        expected = [values[0]]
        for value in values[1:]:
            expected.append(value * k + expected[-1] * (1 - k))

        np.testing.assert_allclose(ema(values, period), expected)


@pytest.mark.unit
class TestRSI:
    """Test Wilder RSI."""

    def test_short_series_returns_empty(self):
        assert len(rsi([1.0] * 14, period=14)) == 0

    def test_warm_up_is_nan(self):
        result = rsi(list(range(30)), period=14)

        assert len(result) == 30
        assert all(math.isnan(v) for v in result[:14])
        assert not math.isnan(result[14])

    def test_wilder_smoothing(self):
        result = rsi([1.0, 2.0, 3.0, 2.0], period=2)

        assert math.isnan(result[0]) and math.isnan(result[1])
        # No losses in the seed window
        assert result[2] == pytest.approx(ZERO_LOSS_RSI)
        # avg gain 0.5, avg loss 0.5
        assert result[3] == pytest.approx(50.0)

    def test_constant_series(self):
        result = rsi([100.0] * 100, period=14)
        assert result[-1] == pytest.approx(ZERO_LOSS_RSI)

    def test_rising_series(self):
        result = rsi([float(i) for i in range(50)], period=14)
        assert result[-1] == pytest.approx(ZERO_LOSS_RSI)

    def test_falling_series(self):
        result = rsi([float(50 - i) for i in range(50)], period=14)
        assert result[-1] == pytest.approx(0.0)

    def test_values_within_bounds(self, bullish_series):
        result = rsi(bullish_series.closes, period=14)
        defined = result[~np.isnan(result)]

        assert np.all(defined >= 0)
        assert np.all(defined <= 100)


@pytest.mark.unit
class TestAvgRange:
    """Test average candle range."""

    def test_uses_last_period(self):
        assert avg_range([2.0, 3.0, 4.0], [1.0, 1.0, 1.0], period=2) == pytest.approx(2.5)

    def test_fewer_than_period(self):
        assert avg_range([2.0, 4.0], [1.0, 1.0], period=20) == pytest.approx(2.0)

    def test_empty(self):
        assert avg_range([], [], period=20) == 0.0

    def test_mismatched_lengths(self):
        with pytest.raises(ValueError):
            avg_range([1.0, 2.0], [1.0], period=20)


@pytest.mark.unit
def test_last_value():
    assert last_value(np.array([1.0, 2.0])) == 2.0
    assert math.isnan(last_value(np.array([])))
