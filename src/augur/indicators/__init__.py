"""Technical and fundamental indicators."""
from .technical import (
    FIBONACCI_RATIOS,
    BollingerBands,
    MACDResult,
    PriceLevel,
    add_technical_indicators,
    bollinger_bands,
    exponential_moving_average,
    fibonacci_levels,
    local_extrema,
    macd,
    moving_average,
    rsi,
    support_resistance,
)
from .fundamental import (
    analyze_exchange_reserves,
    analyze_fear_greed,
    analyze_mvrv_z_score,
    analyze_nupl,
)
