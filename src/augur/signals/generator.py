"""Per-timestamp trading signals and their buy/sell consensus.

Each individual signal is derived from columns already present in the
combined table. A signal whose input columns are absent is omitted, and at
a given timestamp a signal only counts towards the consensus if its inputs
are finite there.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

import numpy as np
import pandas as pd

from ..config import SignalThresholds
from ..core.table import ColumnKind, TimeSeriesTable

logger = logging.getLogger(__name__)

BUY = 'buy'
SELL = 'sell'


@dataclass(frozen=True)
class SignalRow:
    """Signals that fired (True), did not fire (False) or were not computable (None)."""

    timestamp: pd.Timestamp
    signals: Dict[str, object]
    buy_signal: bool
    sell_signal: bool


# name -> (side, values, computable)
_Signal = Tuple[str, np.ndarray, np.ndarray]


def _finite(*arrays: np.ndarray) -> np.ndarray:
    mask = np.ones(len(arrays[0]), dtype=bool)
    for a in arrays:
        mask &= np.isfinite(a)
    return mask


def _lagged(mask: np.ndarray) -> np.ndarray:
    out = np.zeros_like(mask)
    out[1:] = mask[1:] & mask[:-1]
    return out


def _prev(values: np.ndarray) -> np.ndarray:
    out = np.full(len(values), np.nan)
    out[1:] = values[:-1]
    return out


def _crosses(fast: np.ndarray, slow: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Upward and downward crossings of ``fast`` over ``slow`` between consecutive rows."""
    ok = _lagged(_finite(fast, slow))
    diff = fast - slow
    prev = _prev(diff)
    with np.errstate(invalid='ignore'):
        up = ok & (diff > 0) & (prev <= 0)
        down = ok & (diff < 0) & (prev >= 0)
    return up, down, ok


def _threshold(values: np.ndarray, below: float, above: float, inclusive: bool) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    ok = _finite(values)
    with np.errstate(invalid='ignore'):
        if inclusive:
            low, high = values <= below, values >= above
        else:
            low, high = values < below, values > above
    return low & ok, high & ok, ok


def _individual_signals(table: TimeSeriesTable, t: SignalThresholds) -> Dict[str, _Signal]:
    signals: Dict[str, _Signal] = {}

    if t.short_ma in table and t.long_ma in table:
        up, down, ok = _crosses(table.numeric(t.short_ma), table.numeric(t.long_ma))
        signals['golden_cross'] = (BUY, up, ok)
        signals['death_cross'] = (SELL, down, ok)

    if 'RSI' in table:
        low, high, ok = _threshold(table.numeric('RSI'), t.rsi_oversold, t.rsi_overbought, inclusive=False)
        signals['rsi_oversold'] = (BUY, low, ok)
        signals['rsi_overbought'] = (SELL, high, ok)

    if 'MACD_histogram' in table:
        hist = table.numeric('MACD_histogram')
        up, down, ok = _crosses(hist, np.zeros(len(hist)))
        signals['macd_bullish_cross'] = (BUY, up, ok)
        signals['macd_bearish_cross'] = (SELL, down, ok)

    if 'BB_lower' in table and 'BB_upper' in table and 'close' in table:
        close = table.numeric('close')
        lower, upper = table.numeric('BB_lower'), table.numeric('BB_upper')
        ok = _finite(close, lower, upper)
        with np.errstate(invalid='ignore'):
            signals['price_below_lower_band'] = (BUY, ok & (close < lower), ok)
            signals['price_above_upper_band'] = (SELL, ok & (close > upper), ok)

    if 'fear_greed_index' in table:
        low, high, ok = _threshold(table.numeric('fear_greed_index'), t.extreme_fear, t.extreme_greed, inclusive=True)
        signals['extreme_fear'] = (BUY, low, ok)
        signals['extreme_greed'] = (SELL, high, ok)

    if 'mvrv_z_score' in table:
        low, high, ok = _threshold(table.numeric('mvrv_z_score'), t.mvrv_buy, t.mvrv_sell, inclusive=False)
        signals['mvrv_buy_zone'] = (BUY, low, ok)
        signals['mvrv_sell_zone'] = (SELL, high, ok)

    if 'nupl' in table:
        low, high, ok = _threshold(table.numeric('nupl'), t.nupl_opportunity, t.nupl_euphoria, inclusive=False)
        signals['nupl_opportunity'] = (BUY, low, ok)
        signals['nupl_euphoria'] = (SELL, high, ok)

    return signals


def _consensus(signals: Dict[str, _Signal], side: str, n: int, threshold: float) -> Tuple[np.ndarray, np.ndarray]:
    fired = np.zeros(n)
    computable = np.zeros(n)
    for s, values, ok in signals.values():
        if s != side:
            continue
        fired += values & ok
        computable += ok
    with np.errstate(divide='ignore', invalid='ignore'):
        strength = np.where(computable > 0, fired / computable, 0.0)
    decision = (fired >= 1) & (strength >= threshold)
    return decision, strength


def generate_signals(table: TimeSeriesTable, thresholds: SignalThresholds = None) -> TimeSeriesTable:
    """Compute individual and aggregate signals for every timestamp.

    ``buy_signal`` is true where at least one buy signal fired and the
    fired fraction of computable buy signals reaches the consensus
    threshold (0.5 by default); likewise for ``sell_signal``.

    Returns:
        New table with ``close`` (if present), one boolean column per
        individual signal, ``buy_strength``/``sell_strength`` and the
        aggregate ``buy_signal``/``sell_signal``
    """
    t = thresholds or SignalThresholds()
    n = len(table)
    signals = _individual_signals(table, t)
    logger.debug("Computing %d individual signals: %s", len(signals), list(signals))

    out = table.select(['close']) if 'close' in table else table.select([])
    buy, buy_strength = _consensus(signals, BUY, n, t.consensus)
    sell, sell_strength = _consensus(signals, SELL, n, t.consensus)

    columns = {name: values for name, (_, values, _) in signals.items()}
    columns.update({'buy_signal': buy, 'sell_signal': sell})
    kinds = {name: ColumnKind.BOOLEAN for name in columns}
    out = out.with_columns(columns, kinds=kinds)
    out = out.with_columns(
        {'buy_strength': buy_strength, 'sell_strength': sell_strength},
        kinds={'buy_strength': ColumnKind.NUMERIC, 'sell_strength': ColumnKind.NUMERIC},
    )
    # computability masks ride along so consumers can tell "false" from "unknown"
    masks = {f'{name}_computable': ok for name, (_, _, ok) in signals.items()}
    return out.with_columns(masks, kinds={k: ColumnKind.BOOLEAN for k in masks})


def signal_names(signal_table: TimeSeriesTable) -> List[str]:
    reserved = {'close', 'buy_signal', 'sell_signal', 'buy_strength', 'sell_strength'}
    return [
        c for c in signal_table.columns
        if c not in reserved and not c.endswith('_computable')
    ]


def iter_signal_rows(signal_table: TimeSeriesTable) -> Iterator[SignalRow]:
    """Row view of a signal table."""
    names = signal_names(signal_table)
    values = {n: signal_table.column(n) for n in names}
    masks = {
        n: signal_table.column(f'{n}_computable') if f'{n}_computable' in signal_table else None
        for n in names
    }
    buy = signal_table.column('buy_signal')
    sell = signal_table.column('sell_signal')
    for i, ts in enumerate(signal_table.timestamps):
        row = {}
        for n in names:
            mask = masks[n]
            row[n] = bool(values[n][i]) if mask is None or mask[i] else None
        yield SignalRow(timestamp=ts, signals=row, buy_signal=bool(buy[i]), sell_signal=bool(sell[i]))
