"""Unit tests for the Bybit REST candle source."""

import httpx
import numpy as np
import pytest

from ict_scanner.api.bybit_rest import (
    BybitRateLimitError,
    BybitRestClient,
    DataUnavailableError,
    map_timeframe_to_interval,
    normalize_symbol,
)
from ict_scanner.utils.config import ExchangeConfig


BASE_URL = "https://api.bybit.com"


def kline_payload(rows):
    return {
        "retCode": 0,
        "retMsg": "OK",
        "result": {"category": "linear", "symbol": "BTCUSDT", "list": rows},
        "time": 1700000000000
    }


def make_client(handler, env_config, **exchange_overrides):
    http_client = httpx.AsyncClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler)
    )
    return BybitRestClient(ExchangeConfig(**exchange_overrides), env_config, http_client=http_client)


@pytest.mark.unit
class TestTimeframeMapping:
    """Test timeframe token mapping."""

    @pytest.mark.parametrize("timeframe,interval", [
        ("5m", "5"),
        ("15m", "15"),
        ("1h", "60"),
        ("4h", "240"),
        ("1d", "D"),
        ("1D", "D"),
    ])
    def test_known_tokens(self, timeframe, interval):
        assert map_timeframe_to_interval(timeframe) == interval

    @pytest.mark.parametrize("timeframe", ["2h", "1w", "", "15"])
    def test_unknown_tokens_default_to_15(self, timeframe):
        assert map_timeframe_to_interval(timeframe) == "15"


@pytest.mark.unit
class TestNormalizeSymbol:
    """Test symbol normalisation."""

    def test_plain_symbol_unchanged(self):
        assert normalize_symbol("BTCUSDT") == "BTCUSDT"

    def test_perpetual_suffix_removed(self):
        assert normalize_symbol("BTCUSDT.P") == "BTCUSDT"

    def test_bare_base_gets_quote(self):
        assert normalize_symbol("BTC.P") == "BTCUSDT"


@pytest.mark.unit
class TestBybitRestClient:
    """Test kline fetching and error mapping."""

    async def test_get_candle_series(self, env_config, kline_rows, bullish_series):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=kline_payload(kline_rows))

        async with make_client(handler, env_config) as client:
            series = await client.get_candle_series("BTCUSDT.P", "1h")

        np.testing.assert_allclose(series.closes, bullish_series.closes)

        params = requests[0].url.params
        assert requests[0].url.path == "/v5/market/kline"
        assert params["category"] == "linear"
        assert params["symbol"] == "BTCUSDT"
        assert params["interval"] == "60"
        assert params["limit"] == "200"

    async def test_ret_code_error(self, env_config):
        def handler(request):
            return httpx.Response(200, json={"retCode": 10001, "retMsg": "params error", "result": {}})

        async with make_client(handler, env_config) as client:
            with pytest.raises(DataUnavailableError) as exc_info:
                await client.get_candle_series("BTCUSDT", "15m")

        assert exc_info.value.status_code == 10001
        assert exc_info.value.error_code == "params error"

    async def test_http_error(self, env_config):
        def handler(request):
            return httpx.Response(503, text="Service Unavailable")

        async with make_client(handler, env_config) as client:
            with pytest.raises(DataUnavailableError) as exc_info:
                await client.get_candle_series("BTCUSDT", "15m")

        assert exc_info.value.status_code == 503

    async def test_rate_limit_error(self, env_config):
        def handler(request):
            return httpx.Response(429, text="Too Many Requests")

        async with make_client(handler, env_config) as client:
            with pytest.raises(BybitRateLimitError):
                await client.get_candle_series("BTCUSDT", "15m")

    async def test_timeout(self, env_config):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler, env_config) as client:
            with pytest.raises(DataUnavailableError) as exc_info:
                await client.get_candle_series("BTCUSDT", "15m")

        assert exc_info.value.error_code == "TIMEOUT"

    async def test_transport_error(self, env_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler, env_config) as client:
            with pytest.raises(DataUnavailableError):
                await client.get_candle_series("BTCUSDT", "15m")

    async def test_missing_list_is_malformed(self, env_config):
        def handler(request):
            return httpx.Response(200, json={"retCode": 0, "retMsg": "OK", "result": {}})

        async with make_client(handler, env_config) as client:
            with pytest.raises(DataUnavailableError) as exc_info:
                await client.get_candle_series("BTCUSDT", "15m")

        assert exc_info.value.error_code == "MALFORMED_PAYLOAD"

    async def test_bad_row_is_malformed(self, env_config):
        def handler(request):
            return httpx.Response(200, json=kline_payload([["1700000000000", "1", "x", "1", "1", "1", "1"]]))

        async with make_client(handler, env_config) as client:
            with pytest.raises(DataUnavailableError) as exc_info:
                await client.get_candle_series("BTCUSDT", "15m")

        assert exc_info.value.error_code == "MALFORMED_PAYLOAD"

    async def test_retry_recovers(self, env_config, kline_rows):
        responses = iter([
            httpx.Response(429, text="Too Many Requests"),
            httpx.Response(200, json=kline_payload(kline_rows)),
        ])

        def handler(request):
            return next(responses)

        async with make_client(handler, env_config, max_retries=1, retry_backoff=0.1) as client:
            series = await client.get_candle_series("BTCUSDT", "15m")

        assert len(series) == len(kline_rows)

    async def test_health_check(self, env_config):
        def handler(request):
            assert request.url.path == "/v5/market/time"
            return httpx.Response(200, json={
                "retCode": 0,
                "retMsg": "OK",
                "result": {"timeSecond": "1700000000", "timeNano": "1700000000000000000"}
            })

        async with make_client(handler, env_config) as client:
            assert await client.health_check() is True

    async def test_health_check_failure(self, env_config):
        def handler(request):
            return httpx.Response(500, text="error")

        async with make_client(handler, env_config) as client:
            assert await client.health_check() is False
