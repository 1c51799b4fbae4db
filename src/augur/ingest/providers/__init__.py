"""Data source adapters."""
from .base import (
    OnChainMetricSource,
    PriceHistorySource,
    ProviderConfig,
    ReservesSource,
    RestClient,
    SentimentSource,
)
from .ccxt_source import CCXTPriceSource
from .fear_greed import FearGreedSource
from .glassnode import GlassnodeSource
from .simulated import SimulatedReservesSource
