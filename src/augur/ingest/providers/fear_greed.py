"""Crypto Fear & Greed Index from alternative.me.

The endpoint serves readings newest first; they are returned ascending.
"""
import logging
from typing import Optional

import pandas as pd

from .base import ProviderConfig, RestClient, SentimentSource, empty_value_frame, value_frame

logger = logging.getLogger(__name__)


class FearGreedSource(SentimentSource):
    name = "fear_greed"

    API_URL = "https://api.alternative.me/fng/"

    def __init__(self, config: Optional[ProviderConfig] = None, client: Optional[RestClient] = None):
        self.config = config or ProviderConfig()
        self.client = client or RestClient(self.config)

    def fetch(self, limit: int = 365) -> pd.DataFrame:
        payload = self.client.get_json(self.config.base_url or self.API_URL, params={'limit': limit})
        items = (payload or {}).get('data') or []
        if not items:
            logger.warning("Fear & Greed index returned no data")
            return empty_value_frame()

        df = value_frame([item['timestamp'] for item in items], [item['value'] for item in items])
        logger.info("Fetched %d Fear & Greed readings", len(df))
        return df
