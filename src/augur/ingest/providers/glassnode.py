"""Glassnode on-chain metrics.

API Documentation: https://docs.glassnode.com/basic-api/endpoints
"""
import logging
from typing import Dict, Optional

import pandas as pd

from .base import OnChainMetricSource, ProviderConfig, RestClient, empty_value_frame, value_frame

logger = logging.getLogger(__name__)


class GlassnodeSource(OnChainMetricSource):
    """Daily on-chain metrics from the Glassnode REST API.

    Metric names are either short aliases (``mvrv_z_score``, ``nupl``) or
    full endpoint paths such as ``indicators/sopr``.
    """

    name = "glassnode"
    requires_api_key = True

    BASE_URL = "https://api.glassnode.com/v1/metrics"

    METRIC_PATHS: Dict[str, str] = {
        'mvrv_z_score': 'market/mvrv_z_score',
        'nupl': 'indicators/net_unrealized_profit_loss',
        'sopr': 'indicators/sopr',
        'exchange_reserves': 'distribution/balance_exchanges',
        'active_addresses': 'addresses/active_count',
        'hash_rate': 'mining/hash_rate_mean',
    }

    def __init__(self, config: Optional[ProviderConfig] = None, client: Optional[RestClient] = None):
        """Initialize the source.

        Raises:
            ValueError: If no API key is configured
        """
        self.config = config or ProviderConfig()
        if not self.config.api_key:
            raise ValueError(
                f"{self.name} provider requires an API key. "
                f"Set it in the config or the GLASSNODE_API_KEY environment variable."
            )
        self.client = client or RestClient(self.config)

    def metric_url(self, metric: str) -> str:
        base = self.config.base_url or self.BASE_URL
        return f"{base}/{self.METRIC_PATHS.get(metric, metric)}"

    def fetch(self, asset: str, metric: str, since: Optional[int] = None) -> pd.DataFrame:
        params = {'api_key': self.config.api_key, 'a': asset, 'i': '24h'}
        if since is not None:
            params['s'] = int(since)

        payload = self.client.get_json(self.metric_url(metric), params=params)
        if not payload:
            logger.warning("Glassnode returned no %s data for %s", metric, asset)
            return empty_value_frame()

        df = value_frame([item['t'] for item in payload], [item.get('v') for item in payload])
        logger.info("Fetched %d %s points for %s", len(df), metric, asset)
        return df
