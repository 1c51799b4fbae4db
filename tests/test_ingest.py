"""Tests for data source adapters (no network required)."""
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd
import pytest
import requests

from augur.ingest.providers import (
    CCXTPriceSource,
    FearGreedSource,
    GlassnodeSource,
    ProviderConfig,
    RestClient,
    SimulatedReservesSource,
)

DAY_MS = 86_400_000
T0 = 1704067200000  # 2024-01-01T00:00:00Z


def _candle(i: int, close: float = 100.0):
    return [T0 + i * DAY_MS, close, close + 1, close - 1, close, 10.0]


@pytest.fixture
def mock_ccxt():
    """Create mock ccxt module."""
    mock_exchange = MagicMock()
    mock_exchange.parse_timeframe.return_value = 86400

    mock_module = MagicMock()
    mock_module.binance.return_value = mock_exchange
    mock_module.NetworkError = type("NetworkError", (Exception,), {})
    mock_module.ExchangeNotAvailable = type("ExchangeNotAvailable", (mock_module.NetworkError,), {})
    mock_module.RateLimitExceeded = type("RateLimitExceeded", (Exception,), {})
    return mock_module, mock_exchange


class TestCCXTPriceSource:
    def test_fetch_returns_sorted_frame(self, mock_ccxt):
        mock_module, mock_exchange = mock_ccxt
        mock_exchange.fetch_ohlcv.return_value = [_candle(1, 101.0), _candle(0, 100.0), _candle(1, 101.0)]

        with patch.dict('sys.modules', {'ccxt': mock_module}):
            source = CCXTPriceSource(exchange='binance', rate_limit_ms=0)
            df = source.fetch('BTC/USDT', timeframe='1d', limit=2)

        assert list(df.columns) == ['timestamp', 'open', 'high', 'low', 'close', 'volume']
        assert df['close'].tolist() == [100.0, 101.0]
        assert df['timestamp'].is_monotonic_increasing
        assert str(df['timestamp'].dt.tz) == 'UTC'

    def test_pages_backwards_for_large_limits(self, mock_ccxt):
        mock_module, mock_exchange = mock_ccxt
        mock_exchange.fetch_ohlcv.side_effect = [
            [_candle(2), _candle(3)],
            [_candle(1), _candle(2)],
        ]

        with patch.dict('sys.modules', {'ccxt': mock_module}):
            source = CCXTPriceSource(exchange='binance', rate_limit_ms=0)
            source.max_batch = 2
            df = source.fetch('BTC/USDT', timeframe='1d', limit=3)

        assert len(df) == 3
        assert df['timestamp'].iloc[0] == pd.Timestamp(T0 + DAY_MS, unit='ms', tz='UTC')

    def test_retries_network_errors(self, mock_ccxt):
        mock_module, mock_exchange = mock_ccxt
        mock_exchange.fetch_ohlcv.side_effect = [mock_module.NetworkError("boom"), [_candle(0)]]

        with patch.dict('sys.modules', {'ccxt': mock_module}), patch('time.sleep'):
            source = CCXTPriceSource(exchange='binance', rate_limit_ms=0)
            df = source.fetch('BTC/USDT', limit=1)

        assert len(df) == 1
        assert mock_exchange.fetch_ohlcv.call_count == 2

    def test_empty_result(self, mock_ccxt):
        mock_module, mock_exchange = mock_ccxt
        mock_exchange.fetch_ohlcv.return_value = []

        with patch.dict('sys.modules', {'ccxt': mock_module}):
            df = CCXTPriceSource(exchange='binance', rate_limit_ms=0).fetch('BTC/USDT')

        assert df.empty

    def test_unknown_exchange(self):
        with patch.dict('sys.modules', {'ccxt': MagicMock(spec=['binance'])}):
            with pytest.raises(ValueError):
                CCXTPriceSource(exchange='nowhere')


class TestRestClient:
    def test_retries_then_succeeds(self):
        response = MagicMock()
        response.json.return_value = {"ok": True}
        session = MagicMock()
        session.get.side_effect = [requests.ConnectionError("down"), response]

        client = RestClient(ProviderConfig(rate_limit_ms=0), session=session)
        with patch('time.sleep'):
            assert client.get_json("https://example.invalid") == {"ok": True}
        assert session.get.call_count == 2

    def test_raises_after_max_retries(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")

        client = RestClient(ProviderConfig(rate_limit_ms=0, max_retries=2), session=session)
        with patch('time.sleep'), pytest.raises(requests.ConnectionError):
            client.get_json("https://example.invalid")


class TestGlassnodeSource:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            GlassnodeSource(ProviderConfig())

    def test_fetch_builds_request(self):
        client = MagicMock()
        client.get_json.return_value = [
            {"t": 1704153600, "v": 1.5},
            {"t": 1704067200, "v": 1.2},
        ]
        source = GlassnodeSource(ProviderConfig(api_key="secret"), client=client)
        df = source.fetch("BTC", "mvrv_z_score", since=1700000000)

        url = client.get_json.call_args[0][0]
        params = client.get_json.call_args[1]["params"]
        assert url == "https://api.glassnode.com/v1/metrics/market/mvrv_z_score"
        assert params == {"api_key": "secret", "a": "BTC", "i": "24h", "s": 1700000000}
        assert df["value"].tolist() == [1.2, 1.5]
        assert df["timestamp"].iloc[0] == pd.Timestamp("2024-01-01", tz="UTC")

    def test_unknown_metric_used_as_path(self):
        source = GlassnodeSource(ProviderConfig(api_key="k"), client=MagicMock())
        assert source.metric_url("indicators/sopr").endswith("/metrics/indicators/sopr")

    def test_empty_payload(self):
        client = MagicMock()
        client.get_json.return_value = []
        df = GlassnodeSource(ProviderConfig(api_key="k"), client=client).fetch("BTC", "nupl")
        assert df.empty
        assert list(df.columns) == ["timestamp", "value"]


class TestFearGreedSource:
    def test_sorted_ascending(self):
        client = MagicMock()
        client.get_json.return_value = {"data": [
            {"value": "40", "value_classification": "Fear", "timestamp": "1704153600"},
            {"value": "25", "value_classification": "Extreme Fear", "timestamp": "1704067200"},
        ]}
        df = FearGreedSource(client=client).fetch(limit=2)
        assert df["value"].tolist() == [25.0, 40.0]
        assert df["timestamp"].is_monotonic_increasing
        assert client.get_json.call_args[1]["params"] == {"limit": 2}

    def test_no_data(self):
        client = MagicMock()
        client.get_json.return_value = {"data": []}
        assert FearGreedSource(client=client).fetch().empty


class TestSimulatedReserves:
    def test_shape_and_trend(self):
        df = SimulatedReservesSource(seed=7, end="2024-06-30").fetch(days=365)
        assert len(df) == 365
        assert df["timestamp"].iloc[-1] == pd.Timestamp("2024-06-30", tz="UTC")
        assert (df["timestamp"].dt.hour == 0).all()
        assert df["value"].iloc[:30].mean() > df["value"].iloc[-30:].mean()
        assert df["value"].between(1_700_000, 2_100_000).all()

    def test_seeded(self):
        a = SimulatedReservesSource(seed=1, end="2024-01-31").fetch(days=10)
        b = SimulatedReservesSource(seed=1, end="2024-01-31").fetch(days=10)
        np.testing.assert_array_equal(a["value"], b["value"])
