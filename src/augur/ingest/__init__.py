"""Data ingestion."""
from .providers import (
    CCXTPriceSource,
    FearGreedSource,
    GlassnodeSource,
    OnChainMetricSource,
    PriceHistorySource,
    ProviderConfig,
    ReservesSource,
    SentimentSource,
    SimulatedReservesSource,
)
