"""Scan scheduling and signal cache."""

from .cache import SignalCache
from .scanner import PairScanOutcome, PairState, ScanResult, SignalScanner

__all__ = [
    "SignalCache",
    "PairScanOutcome",
    "PairState",
    "ScanResult",
    "SignalScanner",
]
