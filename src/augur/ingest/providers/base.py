"""Contracts for the data sources the pipeline collects from.

Every source returns a plain DataFrame with a UTC ``timestamp`` column
sorted ascending; the pipeline turns them into ``TimeSeriesTable``s.
"""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import pandas as pd
import requests

OHLCV_FRAME_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']
VALUE_FRAME_COLUMNS = ['timestamp', 'value']


@dataclass
class ProviderConfig:
    """Configuration for a data provider."""

    api_key: Optional[str] = None
    base_url: Optional[str] = None
    rate_limit_ms: int = 100
    timeout_s: int = 30
    max_retries: int = 3
    extra: Dict = field(default_factory=dict)


class PriceHistorySource(ABC):
    """OHLCV candles for a trading pair."""

    name: str = "price"

    @abstractmethod
    def fetch(self, symbol: str, timeframe: str = "1d", limit: int = 1000) -> pd.DataFrame:
        """Fetch candles.

        Returns:
            DataFrame with columns: timestamp, open, high, low, close, volume;
            empty if the source has nothing for the symbol
        """


class OnChainMetricSource(ABC):
    """Daily on-chain metric values for an asset."""

    name: str = "onchain"
    requires_api_key: bool = True

    @abstractmethod
    def fetch(self, asset: str, metric: str, since: Optional[int] = None) -> pd.DataFrame:
        """Fetch one metric.

        Args:
            asset: Asset ticker (e.g. 'BTC')
            metric: Metric name (e.g. 'mvrv_z_score')
            since: Optional start as Unix seconds

        Returns:
            DataFrame with columns: timestamp, value
        """


class SentimentSource(ABC):
    """Daily market sentiment index in [0, 100]."""

    name: str = "sentiment"

    @abstractmethod
    def fetch(self, limit: int = 365) -> pd.DataFrame:
        """Fetch the most recent ``limit`` readings as columns timestamp, value."""


class ReservesSource(ABC):
    """Daily exchange reserve balances for an asset."""

    name: str = "reserves"

    @abstractmethod
    def fetch(self, asset: str = "BTC", days: int = 365) -> pd.DataFrame:
        """Fetch ``days`` daily readings as columns timestamp, value."""


class RestClient:
    """Rate-limited JSON GET with retries and exponential backoff."""

    def __init__(self, config: Optional[ProviderConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or ProviderConfig()
        self.session = session or requests.Session()
        self._last_request_time = 0.0

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed_ms = (time.time() * 1000) - self._last_request_time
        if elapsed_ms < self.config.rate_limit_ms:
            time.sleep((self.config.rate_limit_ms - elapsed_ms) / 1000)
        self._last_request_time = time.time() * 1000

    def get_json(self, url: str, params: Optional[Dict] = None):
        """GET ``url`` and decode the JSON body.

        Raises:
            requests.RequestException: If request fails after retries
        """
        last_error = None
        for attempt in range(self.config.max_retries):
            self._rate_limit()
            try:
                response = self.session.get(url, params=params, timeout=self.config.timeout_s)
                response.raise_for_status()
                return response.json()
            except requests.RequestException as e:
                last_error = e
                if attempt < self.config.max_retries - 1:
                    time.sleep(2 ** attempt)  # Exponential backoff

        raise last_error


def empty_value_frame() -> pd.DataFrame:
    return pd.DataFrame(columns=VALUE_FRAME_COLUMNS)


def value_frame(timestamps, values, unit: str = 's') -> pd.DataFrame:
    """Ascending, de-duplicated (timestamp, value) frame from epoch timestamps."""
    df = pd.DataFrame({
        'timestamp': pd.to_datetime(pd.to_numeric(pd.Series(timestamps, dtype=object)).astype('int64'),
                                    unit=unit, utc=True),
        'value': pd.to_numeric(pd.Series(values), errors='coerce'),
    })
    df = df.drop_duplicates(subset=['timestamp'], keep='last').sort_values('timestamp')
    return df.reset_index(drop=True)
