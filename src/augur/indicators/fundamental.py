"""Threshold analysis of on-chain, sentiment and reserve series."""
import numpy as np

from ..config import SignalThresholds
from ..core.table import ColumnKind, TimeSeriesTable

RESERVES_CHANGE_PERIOD = 30
ACCUMULATION_THRESHOLD_PCT = -5.0


def _flags(table: TimeSeriesTable, column: str, columns: dict) -> TimeSeriesTable:
    out = table.select([column])
    kinds = {name: ColumnKind.BOOLEAN for name in columns}
    return out.with_columns(columns, kinds=kinds)


def _below(values: np.ndarray, threshold: float, inclusive: bool = False) -> np.ndarray:
    with np.errstate(invalid='ignore'):
        return (values <= threshold) if inclusive else (values < threshold)


def _above(values: np.ndarray, threshold: float, inclusive: bool = False) -> np.ndarray:
    with np.errstate(invalid='ignore'):
        return (values >= threshold) if inclusive else (values > threshold)


def analyze_mvrv_z_score(table: TimeSeriesTable, thresholds: SignalThresholds = None) -> TimeSeriesTable:
    """MVRV Z-score below 0 is a buy zone, above 7 a sell zone."""
    t = thresholds or SignalThresholds()
    z = table.numeric('mvrv_z_score')
    return _flags(table, 'mvrv_z_score', {
        'buy_signal': _below(z, t.mvrv_buy),
        'sell_signal': _above(z, t.mvrv_sell),
    })


def analyze_nupl(table: TimeSeriesTable, thresholds: SignalThresholds = None) -> TimeSeriesTable:
    """NUPL below 0.25 marks an opportunity zone, above 0.75 euphoria."""
    t = thresholds or SignalThresholds()
    nupl = table.numeric('nupl')
    return _flags(table, 'nupl', {
        'opportunity_zone': _below(nupl, t.nupl_opportunity),
        'euphoria_zone': _above(nupl, t.nupl_euphoria),
    })


def analyze_fear_greed(table: TimeSeriesTable, thresholds: SignalThresholds = None) -> TimeSeriesTable:
    """Index at or below 20 is extreme fear, at or above 80 extreme greed."""
    t = thresholds or SignalThresholds()
    fgi = table.numeric('fear_greed_index')
    return _flags(table, 'fear_greed_index', {
        'extreme_fear': _below(fgi, t.extreme_fear, inclusive=True),
        'extreme_greed': _above(fgi, t.extreme_greed, inclusive=True),
    })


def analyze_exchange_reserves(table: TimeSeriesTable, period: int = RESERVES_CHANGE_PERIOD) -> TimeSeriesTable:
    """Percent change of exchange reserves over ``period`` rows.

    Falling reserves (coins leaving exchanges) by more than 5% flag
    accumulation.
    """
    reserves = table.numeric('exchange_reserves')
    change = np.full(len(reserves), np.nan)
    if len(reserves) > period:
        prev = reserves[:-period]
        with np.errstate(divide='ignore', invalid='ignore'):
            change[period:] = (reserves[period:] - prev) / prev * 100.0
    out = table.select(['exchange_reserves']).with_columns(
        {'reserves_30d_change': change},
        kinds={'reserves_30d_change': ColumnKind.NUMERIC},
        warmup={'reserves_30d_change': min(period, len(reserves))},
    )
    return out.with_columns(
        {'accumulation_signal': _below(change, ACCUMULATION_THRESHOLD_PCT)},
        kinds={'accumulation_signal': ColumnKind.BOOLEAN},
    )
