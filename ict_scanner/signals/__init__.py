"""Trading signal generation modules.

This package implements the EMA bias + OTE retracement strategy and the
signal value types it produces.
"""

from .models import Bias, ReasonCode, Side, Signal, SignalReason
from .ote_strategy import MarketContext, OTEStrategy, OTEZone

__all__ = [
    "Bias",
    "ReasonCode",
    "Side",
    "Signal",
    "SignalReason",
    "MarketContext",
    "OTEStrategy",
    "OTEZone",
]
