"""Single-strategy long-only backtest over an indicator table."""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from ..core.table import TimeSeriesTable
from ..errors import DataUnavailableError
from ..signals.generator import generate_signals
from .stats import StatsCalculator

logger = logging.getLogger(__name__)

# Minimum position size to avoid dust trades
MIN_TRADE_SIZE = 1e-8


@dataclass(frozen=True)
class BacktestResult:
    """Results from a backtest run."""

    strategy: str
    trades_df: pd.DataFrame
    equity_curve: pd.DataFrame
    stats: dict


def _column(table: TimeSeriesTable, name: str) -> Optional[np.ndarray]:
    return table.numeric(name) if name in table else None


def _cross(a: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """(a crosses above b, a crosses below b) at each row versus the previous one."""
    up = np.zeros(len(a), dtype=bool)
    down = np.zeros(len(a), dtype=bool)
    with np.errstate(invalid='ignore'):
        up[1:] = (a[1:] > b[1:]) & (a[:-1] <= b[:-1])
        down[1:] = (a[1:] < b[1:]) & (a[:-1] >= b[:-1])
    return up, down


def _ma_crossover(table: TimeSeriesTable):
    short, long = _column(table, 'MA_50'), _column(table, 'MA_200')
    if short is None or long is None:
        return None
    return _cross(short, long)


def _rsi_oversold(table: TimeSeriesTable):
    rsi = _column(table, 'RSI')
    if rsi is None:
        return None
    buy, _ = _cross(np.full(len(rsi), 30.0), rsi)
    _, sell = _cross(np.full(len(rsi), 70.0), rsi)
    return buy, sell


def _macd_signal(table: TimeSeriesTable):
    macd, signal = _column(table, 'MACD'), _column(table, 'MACD_signal')
    if macd is None or signal is None:
        return None
    return _cross(macd, signal)


def _bollinger_bands(table: TimeSeriesTable):
    close = _column(table, 'close')
    lower, upper = _column(table, 'BB_lower'), _column(table, 'BB_upper')
    if close is None or lower is None or upper is None:
        return None
    _, buy = _cross(close, lower)
    sell, _ = _cross(close, upper)
    return buy, sell


def _composite(table: TimeSeriesTable):
    if 'buy_signal' not in table or 'sell_signal' not in table:
        table = generate_signals(table)
    return table.column('buy_signal').astype(bool), table.column('sell_signal').astype(bool)


STRATEGIES: Dict[str, Callable] = {
    'ma_crossover': _ma_crossover,
    'rsi_oversold': _rsi_oversold,
    'macd_signal': _macd_signal,
    'bollinger_bands': _bollinger_bands,
    'composite': _composite,
}


def _filter_dates(table: TimeSeriesTable, start, end) -> TimeSeriesTable:
    if start is None and end is None:
        return table
    ts = table.timestamps
    mask = np.ones(len(ts), dtype=bool)
    # naive bounds are read as UTC
    if start is not None:
        mask &= np.asarray(ts >= pd.to_datetime(start, utc=True))
    if end is not None:
        mask &= np.asarray(ts <= pd.to_datetime(end, utc=True))
    return table.take_rows(mask)


def run_backtest(
    table: TimeSeriesTable,
    strategy: str = 'composite',
    initial_balance: float = 10000.0,
    start=None,
    end=None,
) -> BacktestResult:
    """Replay a strategy bar by bar.

    Goes all-in at the close of a buy bar when flat, exits the whole
    position at the close of a sell bar, and liquidates any open position
    at the last close.

    Args:
        table: Table with ``close`` and the columns the strategy reads
        strategy: One of ``STRATEGIES``
        initial_balance: Starting cash
        start: Optional inclusive start timestamp
        end: Optional inclusive end timestamp

    Returns:
        BacktestResult with trades, equity curve, and stats

    Raises:
        ValueError: Unknown strategy
        DataUnavailableError: No rows in the requested date range
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy '{strategy}'. Expected one of {sorted(STRATEGIES)}")

    data = _filter_dates(table, start, end)
    if len(data) == 0:
        raise DataUnavailableError("No data in the selected date range", stage='backtest')

    close = data.numeric('close')
    signals = STRATEGIES[strategy](data)
    if signals is None:
        logger.warning("Strategy %s needs columns missing from the table; no trades", strategy)
        buy = sell = np.zeros(len(data), dtype=bool)
    else:
        buy, sell = signals

    balance = float(initial_balance)
    position = 0.0
    entry_price = 0.0
    trades = []
    equity = np.empty(len(data))
    timestamps = data.timestamps

    def _close_position(i: int) -> None:
        nonlocal balance, position
        value = position * close[i]
        trades.append({
            'timestamp': timestamps[i], 'side': 'sell', 'price': float(close[i]),
            'quantity': position, 'pnl': value - entry_price * position, 'balance': balance + value,
        })
        balance += value
        position = 0.0

    for i in range(len(data)):
        price = close[i]
        if i > 0 and np.isfinite(price):
            if buy[i] and position == 0 and balance / price > MIN_TRADE_SIZE:
                position = balance / price
                entry_price = float(price)
                balance = 0.0
                trades.append({
                    'timestamp': timestamps[i], 'side': 'buy', 'price': entry_price,
                    'quantity': position, 'pnl': 0.0, 'balance': position * price,
                })
            elif sell[i] and position > 0:
                _close_position(i)
        equity[i] = balance + position * price

    if position > 0:
        _close_position(len(data) - 1)
        equity[-1] = balance

    trades_df = pd.DataFrame(trades, columns=['timestamp', 'side', 'price', 'quantity', 'pnl', 'balance'])
    equity_curve = pd.DataFrame({'timestamp': timestamps, 'equity': equity})
    stats = StatsCalculator.compute(equity_curve, trades_df, initial_balance)
    logger.info(
        "Backtest %s: %d trades, final balance %.2f, win rate %.2f",
        strategy, stats['total_trades'], stats['final_balance'], stats['win_rate'],
    )
    return BacktestResult(strategy=strategy, trades_df=trades_df, equity_curve=equity_curve, stats=stats)
