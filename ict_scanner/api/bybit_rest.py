"""Bybit v5 public market data REST client.

This module provides the candle source for the scanner: it fetches recent
klines for a symbol/timeframe pair and turns them into a CandleSeries,
with rate limiting, optional retries and uniform error mapping.
"""

import asyncio
import time
from typing import Dict, List, Optional, Any

import httpx

from ..data.candles import CandleDataError, CandleProcessor, CandleSeries
from ..utils.config import ExchangeConfig, EnvironmentConfig
from ..utils.logging import get_api_logger, correlation_context


KLINE_ENDPOINT = "/v5/market/kline"
SERVER_TIME_ENDPOINT = "/v5/market/time"

# Timeframe token -> Bybit kline interval
BYBIT_INTERVALS: Dict[str, str] = {
    "5m": "5",
    "15m": "15",
    "1h": "60",
    "4h": "240",
    "1d": "D",
    "1D": "D",
}
DEFAULT_INTERVAL = "15"

PERPETUAL_SUFFIX = ".P"
QUOTE_ASSET = "USDT"

# Public endpoints allow 600 requests per 5 second window per IP
RATE_LIMIT_REQUESTS = 600
RATE_LIMIT_WINDOW = 5.0


class DataUnavailableError(Exception):
    """Raised when candles for a pair could not be obtained."""

    def __init__(self, message: str, error_code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


class BybitRateLimitError(DataUnavailableError):
    """Exception raised when API rate limit is exceeded."""
    pass


def map_timeframe_to_interval(timeframe: str) -> str:
    """Map a timeframe token to a Bybit kline interval.

    Unknown tokens fall back to 15 minutes.
    """
    return BYBIT_INTERVALS.get(timeframe, DEFAULT_INTERVAL)


def normalize_symbol(symbol: str) -> str:
    """Normalize a symbol to its Bybit linear contract name.

    ``BTCUSDT.P`` -> ``BTCUSDT``, ``BTC.P`` -> ``BTCUSDT``; symbols without
    the perpetual suffix pass through unchanged.
    """
    if not symbol.endswith(PERPETUAL_SUFFIX):
        return symbol

    base = symbol[:-len(PERPETUAL_SUFFIX)]
    if not base.endswith(QUOTE_ASSET):
        base += QUOTE_ASSET
    return base


class BybitRestClient:
    """Bybit public REST client.

    Supports:
    - Kline fetching for the linear category
    - Rate limiting and configurable retry with exponential backoff
    - Mapping of every failure to DataUnavailableError
    - Request/response logging
    """

    def __init__(
        self,
        exchange_config: ExchangeConfig,
        env_config: Optional[EnvironmentConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """Initialize the Bybit REST client.

        Args:
            exchange_config: Exchange configuration
            env_config: Environment configuration (logging switches)
            http_client: Pre-built HTTP client (mainly for tests)
        """
        self.config = exchange_config
        self.env_config = env_config or EnvironmentConfig()
        self.logger = get_api_logger()
        self.processor = CandleProcessor()

        self.enable_request_logging = self.env_config.log_api_requests
        self.enable_response_logging = self.env_config.log_api_responses

        self.client = http_client or httpx.AsyncClient(
            base_url=exchange_config.base_url,
            timeout=exchange_config.timeout,
            limits=httpx.Limits(
                max_connections=exchange_config.max_concurrent_requests,
                max_keepalive_connections=exchange_config.max_concurrent_requests
            )
        )

        # Rate limiting state
        self._request_times: List[float] = []
        self._rate_limit_lock = asyncio.Lock()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _wait_for_rate_limit(self):
        """Wait if necessary to respect rate limits."""
        async with self._rate_limit_lock:
            now = time.monotonic()

            self._request_times = [t for t in self._request_times if now - t < RATE_LIMIT_WINDOW]

            if len(self._request_times) >= RATE_LIMIT_REQUESTS:
                wait_time = RATE_LIMIT_WINDOW - (now - min(self._request_times))

                if wait_time > 0:
                    self.logger.warning(
                        f"Rate limit approaching, waiting {wait_time:.2f} seconds",
                        data={"wait_time": wait_time, "requests_in_window": len(self._request_times)}
                    )
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.monotonic())

    async def _retry_or_raise(self, error: DataUnavailableError, retry_count: int, endpoint: str,
                              params: Optional[Dict[str, Any]]) -> Any:
        if retry_count >= self.config.max_retries:
            raise error

        wait_time = (2 ** retry_count) * self.config.retry_backoff
        self.logger.warning(
            f"{error}, retrying in {wait_time}s",
            data={"endpoint": endpoint, "retry_count": retry_count, "wait_time": wait_time}
        )
        await asyncio.sleep(wait_time)
        return await self._make_request(endpoint, params, retry_count + 1)

    async def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        retry_count: int = 0
    ) -> Any:
        """Make a GET request to the Bybit API.

        Args:
            endpoint: API endpoint
            params: Query parameters
            retry_count: Current retry attempt

        Returns:
            The ``result`` member of the response envelope

        Raises:
            DataUnavailableError: For transport, HTTP and API errors
            BybitRateLimitError: For HTTP 429
        """
        await self._wait_for_rate_limit()

        if self.enable_request_logging:
            self.logger.api_call(
                endpoint=endpoint,
                method="GET",
                data={"params": params, "retry_count": retry_count}
            )

        try:
            response = await self.client.get(
                endpoint,
                params=params,
                headers={'Accept': 'application/json'}
            )
        except httpx.TimeoutException:
            return await self._retry_or_raise(
                DataUnavailableError(f"Request timeout for {endpoint}", "TIMEOUT"),
                retry_count, endpoint, params
            )
        except httpx.RequestError as e:
            return await self._retry_or_raise(
                DataUnavailableError(f"Request error for {endpoint}: {e}", "REQUEST_ERROR"),
                retry_count, endpoint, params
            )

        if self.enable_response_logging:
            self.logger.api_call(
                endpoint=endpoint,
                method="GET",
                data={
                    "status_code": response.status_code,
                    "response_size": len(response.content),
                    "retry_count": retry_count
                }
            )

        if response.status_code == 429:
            return await self._retry_or_raise(
                BybitRateLimitError("Rate limit exceeded", "RATE_LIMIT", 429),
                retry_count, endpoint, params
            )

        if response.status_code != 200:
            raise DataUnavailableError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                f"HTTP_{response.status_code}",
                response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise DataUnavailableError(f"Invalid JSON from {endpoint}: {e}", "MALFORMED_PAYLOAD") from e

        if not isinstance(payload, dict):
            raise DataUnavailableError(f"Unexpected payload from {endpoint}", "MALFORMED_PAYLOAD")

        ret_code = payload.get('retCode')
        if ret_code != 0:
            ret_msg = payload.get('retMsg', 'Unknown error')
            raise DataUnavailableError(
                f"Bybit error {ret_code}: {ret_msg}",
                ret_msg,
                ret_code if isinstance(ret_code, int) else None
            )

        return payload.get('result')

    async def get_klines(
        self,
        symbol: str,
        timeframe: str,
        limit: Optional[int] = None
    ) -> List[List[str]]:
        """Get raw kline rows for a pair.

        Args:
            symbol: Symbol (``.P`` suffixed symbols are normalized)
            timeframe: Timeframe token (e.g. '15m', '4h')
            limit: Number of candles (defaults to exchange.candle_limit)

        Returns:
            Kline rows as returned by Bybit (newest first)
        """
        params = {
            'category': self.config.category,
            'symbol': normalize_symbol(symbol),
            'interval': map_timeframe_to_interval(timeframe),
            'limit': limit or self.config.candle_limit
        }

        result = await self._make_request(KLINE_ENDPOINT, params=params)

        rows = result.get('list') if isinstance(result, dict) else None
        if not isinstance(rows, list):
            raise DataUnavailableError(
                f"Kline response for {symbol} has no result.list",
                "MALFORMED_PAYLOAD"
            )

        return rows

    async def get_candle_series(self, symbol: str, timeframe: str) -> CandleSeries:
        """Get an oldest-first candle series for a pair.

        Args:
            symbol: Symbol
            timeframe: Timeframe token

        Returns:
            Up to ``candle_limit`` most recent candles

        Raises:
            DataUnavailableError: If the candles could not be obtained
        """
        with correlation_context():
            rows = await self.get_klines(symbol, timeframe)

            try:
                return self.processor.to_series(rows, symbol)
            except CandleDataError as e:
                raise DataUnavailableError(str(e), "MALFORMED_PAYLOAD") from e

    async def get_server_time(self) -> Dict[str, Any]:
        """Get Bybit server time."""
        with correlation_context():
            return await self._make_request(SERVER_TIME_ENDPOINT)

    async def health_check(self) -> bool:
        """Check API connectivity.

        Returns:
            True if the API is reachable and answers without error
        """
        try:
            await self.get_server_time()
            return True
        except DataUnavailableError as e:
            self.logger.error(
                "API health check failed",
                data={"error": str(e), "error_code": e.error_code, "status_code": e.status_code}
            )
            return False
