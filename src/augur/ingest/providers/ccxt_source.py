"""Exchange price history via CCXT.

Usage:
    from augur.ingest.providers import CCXTPriceSource

    source = CCXTPriceSource(exchange='binance')
    df = source.fetch('BTC/USDT', timeframe='1d', limit=1000)
"""
import logging
import time
from typing import Optional

import pandas as pd

from .base import OHLCV_FRAME_COLUMNS, PriceHistorySource

logger = logging.getLogger(__name__)

# Rate limiting constants
DEFAULT_RATE_LIMIT_MS = 100  # Minimum ms between requests
MAX_RETRIES = 3
RETRY_DELAY_S = 1.0


class CCXTPriceSource(PriceHistorySource):
    """OHLCV candles from any exchange CCXT supports.

    Attributes:
        exchange_id: Name of the exchange (e.g., 'binance', 'kraken')
        exchange: CCXT exchange instance
        rate_limit_ms: Minimum milliseconds between API calls
    """

    name = "ccxt"

    # Largest candle batch each exchange serves per request
    OHLCV_LIMITS = {
        'binance': 1000,
        'binanceus': 1000,
        'kraken': 720,
        'coinbase': 300,
        'okx': 300,
        'bybit': 200,
        'kucoin': 1500,
    }

    def __init__(
        self,
        exchange: str = 'binance',
        api_key: Optional[str] = None,
        secret: Optional[str] = None,
        rate_limit_ms: int = DEFAULT_RATE_LIMIT_MS,
    ):
        """Initialize the source for an exchange.

        Raises:
            ImportError: If ccxt is not installed
            ValueError: If exchange is not supported by ccxt
        """
        try:
            import ccxt
        except ImportError:
            raise ImportError(
                "CCXT is required for live data fetching. "
                "Install it with: pip install ccxt"
            )

        self.exchange_id = exchange.lower()
        self.rate_limit_ms = rate_limit_ms
        self._last_request_time = 0.0

        if not hasattr(ccxt, self.exchange_id):
            raise ValueError(f"Exchange '{exchange}' not found in CCXT")

        config = {
            'enableRateLimit': True,
            'rateLimit': rate_limit_ms,
        }
        if api_key and secret:
            config['apiKey'] = api_key
            config['secret'] = secret

        self.exchange = getattr(ccxt, self.exchange_id)(config)
        self.max_batch = self.OHLCV_LIMITS.get(self.exchange_id, 1000)

    def _rate_limit(self) -> None:
        """Enforce rate limiting between API calls."""
        elapsed = (time.time() * 1000) - self._last_request_time
        if elapsed < self.rate_limit_ms:
            time.sleep((self.rate_limit_ms - elapsed) / 1000)
        self._last_request_time = time.time() * 1000

    def _retry_request(self, func, *args, **kwargs):
        """Call ``func`` retrying network failures and rate-limit rejections."""
        import ccxt

        last_error = None
        for attempt in range(MAX_RETRIES):
            try:
                self._rate_limit()
                return func(*args, **kwargs)
            except ccxt.RateLimitExceeded as e:
                last_error = e
                # Exponential backoff for rate limits
                time.sleep(RETRY_DELAY_S * (2 ** attempt))
            except (ccxt.NetworkError, ccxt.ExchangeNotAvailable) as e:
                last_error = e
                logger.warning("%s request failed (attempt %d/%d): %s",
                               self.exchange_id, attempt + 1, MAX_RETRIES, e)
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY_S * (attempt + 1))

        raise last_error

    def fetch(self, symbol: str, timeframe: str = '1d', limit: int = 1000) -> pd.DataFrame:
        """Fetch the most recent ``limit`` candles.

        Pages backwards from the newest candle when ``limit`` exceeds the
        exchange's per-request batch.

        Returns:
            DataFrame with columns: timestamp, open, high, low, close, volume
        """
        batch = min(limit, self.max_batch)
        rows = self._retry_request(self.exchange.fetch_ohlcv, symbol, timeframe, limit=batch) or []

        if rows and len(rows) < limit:
            step_ms = self.exchange.parse_timeframe(timeframe) * 1000
            while len(rows) < limit:
                want = min(self.max_batch, limit - len(rows))
                since = rows[0][0] - want * step_ms
                older = self._retry_request(self.exchange.fetch_ohlcv, symbol, timeframe,
                                            since=since, limit=want)
                older = [r for r in (older or []) if r[0] < rows[0][0]]
                if not older:
                    break
                rows = older + rows

        if not rows:
            logger.warning("No candles returned for %s %s on %s", symbol, timeframe, self.exchange_id)
            return pd.DataFrame(columns=OHLCV_FRAME_COLUMNS)

        df = pd.DataFrame(rows, columns=OHLCV_FRAME_COLUMNS)
        df['timestamp'] = pd.to_datetime(df['timestamp'], unit='ms', utc=True)

        # Remove duplicates and sort
        df = df.drop_duplicates(subset=['timestamp']).sort_values('timestamp')
        df = df.tail(limit)
        logger.info("Fetched %d %s candles for %s from %s", len(df), timeframe, symbol, self.exchange_id)
        return df.reset_index(drop=True)
