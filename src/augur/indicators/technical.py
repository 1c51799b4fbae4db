"""Technical indicators over a single OHLCV series.

All functions are pure: they take arrays (or a table) and return new
arrays (or a new table). Positions without enough history are NaN, never
zero, and nothing reads past the current position.
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from ..config import IndicatorConfig
from ..core.table import ColumnKind, TimeSeriesTable

FIBONACCI_RATIOS = (0.0, 0.236, 0.382, 0.5, 0.618, 0.786, 1.0)


@dataclass(frozen=True)
class BollingerBands:
    middle: np.ndarray
    upper: np.ndarray
    lower: np.ndarray
    std: np.ndarray


@dataclass(frozen=True)
class MACDResult:
    macd: np.ndarray
    signal: np.ndarray
    histogram: np.ndarray
    ema_fast: np.ndarray
    ema_slow: np.ndarray


@dataclass(frozen=True)
class PriceLevel:
    """A support or resistance candidate."""

    timestamp: pd.Timestamp
    price: float


def _as_series(values) -> pd.Series:
    return pd.Series(np.asarray(values, dtype=float))


def moving_average(series, window: int) -> np.ndarray:
    """Simple moving average; the first ``window - 1`` entries are NaN."""
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    return _as_series(series).rolling(window, min_periods=window).mean().to_numpy()


def exponential_moving_average(series, period: int) -> np.ndarray:
    """EMA seeded with the first value, alpha = 2 / (period + 1).

    Leading NaNs in the input stay NaN and the seed is the first finite
    value, so an EMA of an EMA-derived series is well defined.
    """
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")
    return _as_series(series).ewm(span=period, adjust=False).mean().to_numpy()


def rsi(closes, period: int = 14) -> np.ndarray:
    """Relative Strength Index over trailing ``period`` price changes.

    RSI is 100 wherever the average loss is zero. The first ``period``
    entries are NaN.
    """
    delta = _as_series(closes).diff()
    gain = delta.clip(lower=0)
    loss = (-delta).clip(lower=0)
    avg_gain = gain.rolling(period, min_periods=period).mean()
    avg_loss = loss.rolling(period, min_periods=period).mean()

    with np.errstate(divide='ignore', invalid='ignore'):
        rs = avg_gain / avg_loss
        out = 100.0 - 100.0 / (1.0 + rs)
    out = out.where(avg_loss != 0, 100.0)
    out[avg_gain.isna() | avg_loss.isna()] = np.nan
    return out.to_numpy()


def bollinger_bands(closes, window: int = 20, num_std: float = 2.0) -> BollingerBands:
    """Bollinger Bands using the population standard deviation."""
    s = _as_series(closes)
    middle = s.rolling(window, min_periods=window).mean()
    std = s.rolling(window, min_periods=window).std(ddof=0)
    return BollingerBands(
        middle=middle.to_numpy(),
        upper=(middle + num_std * std).to_numpy(),
        lower=(middle - num_std * std).to_numpy(),
        std=std.to_numpy(),
    )


def macd(closes, fast: int = 12, slow: int = 26, signal: int = 9) -> MACDResult:
    """MACD line, signal line and histogram."""
    ema_fast = exponential_moving_average(closes, fast)
    ema_slow = exponential_moving_average(closes, slow)
    line = ema_fast - ema_slow
    signal_line = exponential_moving_average(line, signal)
    return MACDResult(
        macd=line,
        signal=signal_line,
        histogram=line - signal_line,
        ema_fast=ema_fast,
        ema_slow=ema_slow,
    )


def fibonacci_levels(high, low, trend: str = 'uptrend') -> Dict[float, float]:
    """Retracement levels between the extreme low and high of the window.

    For an uptrend the 0 level is the lowest low and the 1 level the highest
    high; a downtrend swaps the anchors.
    """
    if trend not in ('uptrend', 'downtrend'):
        raise ValueError(f"trend must be 'uptrend' or 'downtrend', got {trend!r}")
    lo = float(np.nanmin(np.asarray(low, dtype=float)))
    hi = float(np.nanmax(np.asarray(high, dtype=float)))
    start, end = (lo, hi) if trend == 'uptrend' else (hi, lo)
    diff = end - start
    return {ratio: start + ratio * diff for ratio in FIBONACCI_RATIOS}


def local_extrema(series, window: int) -> Tuple[List[int], List[int]]:
    """Positions of local minima and maxima.

    A position is a support candidate when it is <= every value within
    ``window`` positions on both sides, a resistance candidate when >=.
    Ties count. Positions closer than ``window`` to either edge are skipped.

    Returns:
        Tuple of (support_positions, resistance_positions)
    """
    values = np.asarray(series, dtype=float)
    supports, resistances = [], []
    for i in range(window, len(values) - window):
        neighbours = np.concatenate([values[i - window:i], values[i + 1:i + window + 1]])
        if np.all(values[i] <= neighbours):
            supports.append(i)
        if np.all(values[i] >= neighbours):
            resistances.append(i)
    return supports, resistances


def support_resistance(table: TimeSeriesTable, window: int = 10) -> Tuple[List[PriceLevel], List[PriceLevel]]:
    """Support levels from local lows and resistance levels from local highs."""
    low = table.numeric('low')
    high = table.numeric('high')
    ts = table.timestamps
    support_pos, _ = local_extrema(low, window)
    _, resistance_pos = local_extrema(high, window)
    supports = [PriceLevel(ts[i], float(low[i])) for i in support_pos]
    resistances = [PriceLevel(ts[i], float(high[i])) for i in resistance_pos]
    return supports, resistances


def add_technical_indicators(table: TimeSeriesTable, config: IndicatorConfig = None) -> TimeSeriesTable:
    """Return a copy of the price table enriched with indicator columns.

    Adds ``MA_<w>`` per configured window, ``RSI``, ``BB_*`` and the MACD
    family. Each column records how many leading rows are warmup.
    """
    config = config or IndicatorConfig()
    close = table.numeric('close')

    columns: Dict[str, np.ndarray] = {}
    warmup: Dict[str, int] = {}

    for w in config.ma_windows:
        columns[f'MA_{w}'] = moving_average(close, w)
        warmup[f'MA_{w}'] = min(w - 1, len(close))

    columns['RSI'] = rsi(close, config.rsi_period)
    warmup['RSI'] = min(config.rsi_period, len(close))

    bands = bollinger_bands(close, config.bb_window, config.bb_num_std)
    for name, values in (('BB_middle', bands.middle), ('BB_std', bands.std),
                         ('BB_upper', bands.upper), ('BB_lower', bands.lower)):
        columns[name] = values
        warmup[name] = min(config.bb_window - 1, len(close))

    m = macd(close, config.macd_fast, config.macd_slow, config.macd_signal)
    columns.update({
        'EMA_fast': m.ema_fast,
        'EMA_slow': m.ema_slow,
        'MACD': m.macd,
        'MACD_signal': m.signal,
        'MACD_histogram': m.histogram,
    })

    kinds = {name: ColumnKind.NUMERIC for name in columns}
    return table.with_columns(columns, kinds=kinds, warmup=warmup)
