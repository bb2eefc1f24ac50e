"""Signal value types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..utils.time_utils import get_utc_now


class Side(str, Enum):
    """Trade direction of a signal."""
    LONG = "LONG"
    SHORT = "SHORT"
    FLAT = "FLAT"


class Bias(str, Enum):
    """Directional lean from the fast/slow EMA relationship."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class ReasonCode(str, Enum):
    """Why a signal has its side."""
    BULLISH_DISCOUNT_OTE = "bullish_discount_ote"
    BEARISH_PREMIUM_OTE = "bearish_premium_ote"
    NO_SETUP = "no_setup"
    INSUFFICIENT_HISTORY = "insufficient_history"


@dataclass(frozen=True)
class SignalReason:
    """Structured reason; rendered to text by the presentation layer."""

    code: ReasonCode
    rsi: Optional[float] = None
    candle_count: Optional[int] = None


@dataclass(frozen=True)
class Signal:
    """Latest classification for one (symbol, timeframe) pair.

    Equality ignores ``timestamp`` so two scans of identical candles compare
    equal.
    """

    symbol: str
    timeframe: str
    side: Side
    entry: Optional[float]
    tp: Optional[float]
    sl: Optional[float]
    reason: SignalReason
    timestamp: datetime = field(default_factory=get_utc_now, compare=False)

    @property
    def is_setup(self) -> bool:
        return self.side != Side.FLAT
