"""Rendering of cached signals for the console and JSON output."""

from typing import Any, Dict, List, Optional

from rich.markup import escape
from rich.table import Table

from .scanner.cache import SignalCache
from .signals.models import ReasonCode, Side, Signal
from .utils.time_utils import format_utc_time


PLACEHOLDER_TEXT = "No signal yet..."
MISSING_VALUE = "-"

SIDE_STYLES = {
    Side.LONG: "bold green",
    Side.SHORT: "bold red",
    Side.FLAT: "dim",
}


def render_reason(signal: Signal) -> str:
    """Human-readable reason text for a signal."""
    reason = signal.reason

    if reason.code == ReasonCode.BULLISH_DISCOUNT_OTE:
        return f"[{signal.timeframe}] Bullish bias, discount OTE, RSI {reason.rsi:.1f}"
    if reason.code == ReasonCode.BEARISH_PREMIUM_OTE:
        return f"[{signal.timeframe}] Bearish bias, premium OTE, RSI {reason.rsi:.1f}"
    if reason.code == ReasonCode.INSUFFICIENT_HISTORY:
        return f"insufficient history ({reason.candle_count} candles)"
    return "no setup"


def format_price(value: Optional[float]) -> str:
    if value is None:
        return MISSING_VALUE
    return f"{value:.6f}"


def signal_to_dict(signal: Signal) -> Dict[str, Any]:
    """JSON-ready representation of a signal."""
    return {
        "symbol": signal.symbol,
        "timeframe": signal.timeframe,
        "side": signal.side.value,
        "entry": signal.entry,
        "tp": signal.tp,
        "sl": signal.sl,
        "reason": render_reason(signal),
        "reason_code": signal.reason.code.value,
        "timestamp": signal.timestamp.isoformat(),
    }


def build_signal_table(cache: SignalCache, symbols: List[str], timeframes: List[str]) -> Table:
    """Build a table with one row per configured pair.

    Args:
        cache: Signal cache to read
        symbols: Configured symbols (row order)
        timeframes: Configured timeframes (row order within a symbol)

    Returns:
        Rich table; pairs never scanned successfully show a placeholder
    """
    snapshot = cache.snapshot()

    table = Table(title="📊 ICT Multi-Timeframe Signals", show_header=True, header_style="bold magenta")
    table.add_column("Pair", style="cyan", width=14)
    table.add_column("TF", style="white", width=5)
    table.add_column("Side", width=6)
    table.add_column("Entry", justify="right", width=16)
    table.add_column("TP", justify="right", width=16)
    table.add_column("SL", justify="right", width=16)
    table.add_column("Reason", style="white")
    table.add_column("Updated (UTC)", style="dim", width=19)

    for symbol in symbols:
        by_timeframe = snapshot.get(symbol, {})
        for timeframe in timeframes:
            signal = by_timeframe.get(timeframe)

            if signal is None:
                table.add_row(symbol, timeframe, MISSING_VALUE, "", "", "", PLACEHOLDER_TEXT, "")
                continue

            style = SIDE_STYLES[signal.side]
            table.add_row(
                symbol,
                timeframe,
                f"[{style}]{signal.side.value}[/{style}]",
                format_price(signal.entry),
                format_price(signal.tp),
                format_price(signal.sl),
                escape(render_reason(signal)),
                format_utc_time(signal.timestamp)
            )

    return table
