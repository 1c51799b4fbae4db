"""Strategy backtesting."""
from .runner import STRATEGIES, BacktestResult, run_backtest
from .stats import StatsCalculator
