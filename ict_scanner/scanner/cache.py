"""Latest-signal store shared between the scanner and its readers."""

import threading
from typing import Dict, Optional

from ..signals.models import Signal


class SignalCache:
    """Mapping of symbol -> timeframe -> latest Signal.

    Writes replace a single entry atomically; reads hand out copies so
    readers never observe a partially updated mapping.
    """

    def __init__(self):
        self._signals: Dict[str, Dict[str, Signal]] = {}
        self._lock = threading.Lock()

    def put(self, signal: Signal) -> None:
        """Store a signal, replacing the previous one for its pair."""
        with self._lock:
            self._signals.setdefault(signal.symbol, {})[signal.timeframe] = signal

    def get(self, symbol: str, timeframe: str) -> Optional[Signal]:
        with self._lock:
            return self._signals.get(symbol, {}).get(timeframe)

    def for_symbol(self, symbol: str) -> Dict[str, Signal]:
        with self._lock:
            return dict(self._signals.get(symbol, {}))

    def snapshot(self) -> Dict[str, Dict[str, Signal]]:
        """Copy of the whole mapping."""
        with self._lock:
            return {symbol: dict(by_tf) for symbol, by_tf in self._signals.items()}

    def clear(self) -> None:
        with self._lock:
            self._signals.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(by_tf) for by_tf in self._signals.values())

    def __contains__(self, key) -> bool:
        symbol, timeframe = key
        return self.get(symbol, timeframe) is not None
