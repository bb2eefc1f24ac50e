"""EMA bias + OTE retracement signal strategy.

Rules:
- Bias: EMA20 above EMA50 is bullish, below is bearish, equal is neutral
- Swing: high/low of the last 30 closes, mid is their average
- OTE zone: 61.8%-79% retracement of the swing, in discount (below mid)
  for a bullish bias and in premium (above mid) for a bearish bias
- Filters: RSI 40-70 for longs, 30-60 for shorts
- Targets: TP 2.5 and SL 1.2 average candle ranges from entry
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .models import Bias, ReasonCode, Side, Signal, SignalReason
from ..data.candles import CandleSeries
from ..data.indicators import avg_range, ema, last_value, rsi
from ..utils.config import OTEStrategyConfig
from ..utils.logging import get_scanner_logger, log_performance


logger = get_scanner_logger(__name__)


@dataclass(frozen=True)
class OTEZone:
    """Optimal trade entry band."""

    low: float
    high: float

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high


@dataclass(frozen=True)
class MarketContext:
    """Indicator readings a signal decision is made from."""

    price: float
    ema_fast: float
    ema_slow: float
    rsi: Optional[float]
    recent_high: float
    recent_low: float
    mid: float
    avg_range: float
    bias: Bias
    zone: Optional[OTEZone]


class OTEStrategy:
    """Classifies a candle series into LONG, SHORT or FLAT.

    Results depend only on the candles, symbol and timeframe (plus the
    creation timestamp of the Signal).
    """

    def __init__(self, config: Optional[OTEStrategyConfig] = None):
        """Initialize strategy.

        Args:
            config: Strategy configuration (defaults when None)
        """
        self.config = config or OTEStrategyConfig()
        self.logger = logger

    def determine_bias(self, ema_fast: float, ema_slow: float) -> Bias:
        if ema_fast > ema_slow:
            return Bias.BULLISH
        if ema_fast < ema_slow:
            return Bias.BEARISH
        return Bias.NEUTRAL

    def calculate_ote_zone(self, bias: Bias, recent_high: float, recent_low: float) -> Optional[OTEZone]:
        """Calculate the OTE band for a bias.

        Args:
            bias: Current bias
            recent_high: Swing high
            recent_low: Swing low

        Returns:
            OTE zone, or None for a neutral bias
        """
        diff = recent_high - recent_low

        if bias == Bias.BULLISH:
            # Retracement down from the swing high
            return OTEZone(
                low=recent_high - diff * self.config.ote_fib_deep,
                high=recent_high - diff * self.config.ote_fib_shallow
            )

        if bias == Bias.BEARISH:
            # Retracement up from the swing low
            return OTEZone(
                low=recent_low + diff * self.config.ote_fib_shallow,
                high=recent_low + diff * self.config.ote_fib_deep
            )

        return None

    def analyze(self, series: CandleSeries) -> MarketContext:
        """Compute the indicator readings for a non-empty series.

        Args:
            series: Candle series, oldest first

        Returns:
            Market context at the last candle
        """
        closes = series.closes
        price = float(closes[-1])

        ema_fast_now = last_value(ema(closes, self.config.ema_fast))
        ema_slow_now = last_value(ema(closes, self.config.ema_slow))
        rsi_now = last_value(rsi(closes, self.config.rsi_period))

        recent = closes[-self.config.swing_lookback:]
        recent_high = float(np.max(recent))
        recent_low = float(np.min(recent))
        mid = (recent_high + recent_low) / 2

        candle_range = avg_range(series.highs, series.lows, self.config.range_period)
        if candle_range == 0:
            candle_range = price * self.config.fallback_range_pct

        bias = self.determine_bias(ema_fast_now, ema_slow_now)

        return MarketContext(
            price=price,
            ema_fast=ema_fast_now,
            ema_slow=ema_slow_now,
            rsi=None if math.isnan(rsi_now) else rsi_now,
            recent_high=recent_high,
            recent_low=recent_low,
            mid=mid,
            avg_range=candle_range,
            bias=bias,
            zone=self.calculate_ote_zone(bias, recent_high, recent_low)
        )

    def is_long_setup(self, ctx: MarketContext) -> bool:
        return (
            ctx.bias == Bias.BULLISH
            and ctx.price < ctx.mid
            and ctx.rsi is not None
            and self.config.long_rsi_min < ctx.rsi < self.config.long_rsi_max
            and ctx.zone is not None
            and ctx.zone.contains(ctx.price)
        )

    def is_short_setup(self, ctx: MarketContext) -> bool:
        return (
            ctx.bias == Bias.BEARISH
            and ctx.price > ctx.mid
            and ctx.rsi is not None
            and self.config.short_rsi_min < ctx.rsi < self.config.short_rsi_max
            and ctx.zone is not None
            and ctx.zone.contains(ctx.price)
        )

    @log_performance
    def generate_signal(self, symbol: str, timeframe: str, series: CandleSeries) -> Signal:
        """Generate the signal for one pair.

        Args:
            symbol: Market symbol
            timeframe: Timeframe token
            series: Candle series, oldest first

        Returns:
            LONG/SHORT signal when a setup is present, FLAT otherwise
        """
        if len(series) < self.config.min_candles:
            self.logger.debug(
                f"Insufficient history for {symbol} [{timeframe}]: {len(series)} < {self.config.min_candles}"
            )
            return Signal(
                symbol=symbol,
                timeframe=timeframe,
                side=Side.FLAT,
                entry=series.last_close if len(series) else None,
                tp=None,
                sl=None,
                reason=SignalReason(ReasonCode.INSUFFICIENT_HISTORY, candle_count=len(series))
            )

        ctx = self.analyze(series)

        self.logger.debug(
            f"Market context for {symbol} [{timeframe}]",
            data={
                "symbol": symbol,
                "timeframe": timeframe,
                "price": ctx.price,
                "bias": ctx.bias.value,
                "ema_fast": ctx.ema_fast,
                "ema_slow": ctx.ema_slow,
                "rsi": ctx.rsi,
                "mid": ctx.mid,
                "ote_low": ctx.zone.low if ctx.zone else None,
                "ote_high": ctx.zone.high if ctx.zone else None,
                "avg_range": ctx.avg_range
            }
        )

        tp_distance = ctx.avg_range * self.config.tp_range_mult
        sl_distance = ctx.avg_range * self.config.sl_range_mult

        if self.is_long_setup(ctx):
            return Signal(
                symbol=symbol,
                timeframe=timeframe,
                side=Side.LONG,
                entry=ctx.price,
                tp=ctx.price + tp_distance,
                sl=ctx.price - sl_distance,
                reason=SignalReason(ReasonCode.BULLISH_DISCOUNT_OTE, rsi=ctx.rsi)
            )

        if self.is_short_setup(ctx):
            return Signal(
                symbol=symbol,
                timeframe=timeframe,
                side=Side.SHORT,
                entry=ctx.price,
                tp=ctx.price - tp_distance,
                sl=ctx.price + sl_distance,
                reason=SignalReason(ReasonCode.BEARISH_PREMIUM_OTE, rsi=ctx.rsi)
            )

        return Signal(
            symbol=symbol,
            timeframe=timeframe,
            side=Side.FLAT,
            entry=ctx.price,
            tp=None,
            sl=None,
            reason=SignalReason(ReasonCode.NO_SETUP)
        )
