"""Periodic signal scanner.

This module drives scan passes over every configured (symbol, timeframe)
pair: fetch candles, classify them, and store the latest signal per pair.
A pair whose fetch or scoring fails keeps its previous signal.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .cache import SignalCache
from ..api.bybit_rest import BybitRestClient, DataUnavailableError
from ..signals.models import Signal
from ..signals.ote_strategy import OTEStrategy
from ..utils.config import Config
from ..utils.logging import get_scanner_logger, log_performance, correlation_context
from ..utils.time_utils import get_utc_now


logger = get_scanner_logger(__name__)


class PairState(str, Enum):
    """Progress of a pair within the current pass."""
    IDLE = "idle"
    FETCHING = "fetching"
    SCORED = "scored"
    FAILED = "failed"


@dataclass
class PairScanOutcome:
    """Result of scanning one pair."""

    symbol: str
    timeframe: str
    state: PairState
    signal: Optional[Signal] = None
    error: Optional[str] = None


@dataclass
class ScanResult:
    """Result of one scan pass."""

    outcomes: List[PairScanOutcome] = field(default_factory=list)
    total_pairs: int = 0
    succeeded: int = 0
    failed: int = 0
    setups: int = 0
    scan_duration_seconds: float = 0.0
    timestamp: datetime = field(default_factory=get_utc_now)


class SignalScanner:
    """Scan scheduler for the configured pairs.

    Runs one task per pair, bounded by ``scanner.max_concurrent_scans``.
    Passes never overlap: a pass requested while another is running is
    skipped.
    """

    def __init__(
        self,
        config: Config,
        candle_source: BybitRestClient,
        cache: Optional[SignalCache] = None,
        strategy: Optional[OTEStrategy] = None
    ):
        """Initialize scanner.

        Args:
            config: System configuration
            candle_source: Object providing ``get_candle_series(symbol, timeframe)``
            cache: Signal cache to write into (new one if None)
            strategy: Signal strategy (built from config if None)
        """
        self.config = config
        self.scanner_config = config.scanner
        self.candle_source = candle_source
        self.cache = cache if cache is not None else SignalCache()
        self.strategy = strategy or OTEStrategy(config.strategy)

        self.pair_states: Dict[Tuple[str, str], PairState] = {}
        self.passes_completed = 0
        self.last_result: Optional[ScanResult] = None

        self._pass_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

        self.logger = logger

    def pairs(self) -> List[Tuple[str, str]]:
        """All configured (symbol, timeframe) pairs."""
        return [
            (symbol, timeframe)
            for symbol in self.scanner_config.symbols
            for timeframe in self.scanner_config.timeframes
        ]

    @property
    def is_scanning(self) -> bool:
        return self._pass_lock.locked()

    async def scan_pair(self, symbol: str, timeframe: str) -> PairScanOutcome:
        """Fetch, classify and store the signal for one pair.

        Failures are logged and leave the cache untouched.

        Args:
            symbol: Symbol
            timeframe: Timeframe token

        Returns:
            Outcome of the pair
        """
        key = (symbol, timeframe)
        self.pair_states[key] = PairState.FETCHING

        try:
            series = await self.candle_source.get_candle_series(symbol, timeframe)
            signal = self.strategy.generate_signal(symbol, timeframe, series)

        except DataUnavailableError as e:
            self.pair_states[key] = PairState.FAILED
            self.logger.warning(
                f"Candles unavailable for {symbol} [{timeframe}]: {e}",
                data={
                    "symbol": symbol,
                    "timeframe": timeframe,
                    "error_code": e.error_code,
                    "status_code": e.status_code
                }
            )
            return PairScanOutcome(symbol, timeframe, PairState.FAILED, error=str(e))

        except Exception as e:
            self.pair_states[key] = PairState.FAILED
            self.logger.error(
                f"Error scanning {symbol} [{timeframe}]: {e}",
                data={"symbol": symbol, "timeframe": timeframe, "error": str(e)}
            )
            return PairScanOutcome(symbol, timeframe, PairState.FAILED, error=str(e))

        self.cache.put(signal)
        self.pair_states[key] = PairState.SCORED

        if signal.is_setup:
            self.logger.info(
                f"{signal.side.value} setup on {symbol} [{timeframe}]",
                data={
                    "symbol": symbol,
                    "timeframe": timeframe,
                    "side": signal.side.value,
                    "entry": signal.entry,
                    "tp": signal.tp,
                    "sl": signal.sl
                }
            )

        return PairScanOutcome(symbol, timeframe, PairState.SCORED, signal=signal)

    @log_performance
    async def run_pass(self) -> Optional[ScanResult]:
        """Run one scan pass over every configured pair.

        Returns:
            Scan result, or None when a pass is already running
        """
        if self._pass_lock.locked():
            self.logger.warning("Scan pass already running, skipping")
            return None

        async with self._pass_lock:
            start_time = time.monotonic()
            pairs = self.pairs()

            with correlation_context():
                self.logger.info(
                    f"Starting scan pass over {len(pairs)} pairs",
                    data={"pairs": len(pairs), "pass": self.passes_completed + 1}
                )

                for key in pairs:
                    self.pair_states[key] = PairState.IDLE

                semaphore = asyncio.Semaphore(self.scanner_config.max_concurrent_scans)

                async def bounded_scan(symbol: str, timeframe: str) -> PairScanOutcome:
                    async with semaphore:
                        return await self.scan_pair(symbol, timeframe)

                outcomes = await asyncio.gather(
                    *(bounded_scan(symbol, timeframe) for symbol, timeframe in pairs)
                )

                succeeded = sum(1 for o in outcomes if o.state == PairState.SCORED)
                setups = sum(1 for o in outcomes if o.signal is not None and o.signal.is_setup)

                result = ScanResult(
                    outcomes=list(outcomes),
                    total_pairs=len(pairs),
                    succeeded=succeeded,
                    failed=len(pairs) - succeeded,
                    setups=setups,
                    scan_duration_seconds=time.monotonic() - start_time
                )

                self.passes_completed += 1
                self.last_result = result

                self.logger.info(
                    "Scan pass completed",
                    data={
                        "duration_seconds": round(result.scan_duration_seconds, 3),
                        "total_pairs": result.total_pairs,
                        "succeeded": result.succeeded,
                        "failed": result.failed,
                        "setups": result.setups
                    }
                )

                return result

    async def run_forever(
        self,
        max_passes: Optional[int] = None,
        interval_seconds: Optional[float] = None,
        on_pass: Optional[Callable[[ScanResult], None]] = None
    ) -> None:
        """Run scan passes at a fixed interval until stopped.

        Args:
            max_passes: Stop after this many passes (None runs until stop())
            interval_seconds: Interval override (defaults to scanner.scan_interval_seconds)
            on_pass: Called with each completed pass result
        """
        interval = (
            interval_seconds if interval_seconds is not None
            else self.scanner_config.scan_interval_seconds
        )
        self._stop_event.clear()
        passes = 0

        self.logger.info(
            "Scanner started",
            data={"interval_seconds": interval, "max_passes": max_passes, "pairs": len(self.pairs())}
        )

        while not self._stop_event.is_set():
            start_time = time.monotonic()

            try:
                result = await self.run_pass()
                if result is not None and on_pass is not None:
                    on_pass(result)
            except Exception as e:
                self.logger.error(f"Scan pass failed: {e}", data={"error": str(e)})

            passes += 1
            if max_passes is not None and passes >= max_passes:
                break

            remaining = max(0.0, interval - (time.monotonic() - start_time))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass

        self.logger.info("Scanner stopped", data={"passes": passes})

    def stop(self) -> None:
        """Request the run loop to stop after the current pass."""
        self._stop_event.set()
        self.logger.info("Scanner stop requested")
