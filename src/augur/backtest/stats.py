"""Performance statistics calculation."""
from typing import Dict

import numpy as np
import pandas as pd

from ..risk.management import MAX_RATIO, max_drawdown


class StatsCalculator:
    """Calculate performance statistics from backtest results."""

    @staticmethod
    def _safe_ratio(value: float) -> float:
        """Convert inf to MAX_RATIO for JSON-safe output."""
        if np.isinf(value):
            return MAX_RATIO if value > 0 else -MAX_RATIO
        if np.isnan(value):
            return 0.0
        return float(value)

    @staticmethod
    def compute(
        equity_curve: pd.DataFrame,
        trades_df: pd.DataFrame,
        initial_balance: float,
    ) -> Dict:
        """Compute performance statistics.

        Args:
            equity_curve: DataFrame with 'timestamp', 'equity' columns
            trades_df: DataFrame with 'side', 'pnl', 'balance' columns; one
                row per buy and per sell
            initial_balance: Starting balance

        Returns:
            Dict with performance metrics (all values are JSON-safe)
        """
        stats = {"initial_balance": initial_balance}

        if equity_curve.empty:
            stats["final_balance"] = initial_balance
            stats["backtest_start"] = None
            stats["backtest_end"] = None
        else:
            stats["final_balance"] = float(equity_curve["equity"].iloc[-1])
            stats["backtest_start"] = str(equity_curve["timestamp"].iloc[0])
            stats["backtest_end"] = str(equity_curve["timestamp"].iloc[-1])
        stats["total_return"] = (stats["final_balance"] - initial_balance) / initial_balance
        stats["total_return_pct"] = stats["total_return"] * 100

        stats["max_drawdown"] = max_drawdown(equity_curve["equity"].values) if not equity_curve.empty else 0.0
        stats["max_drawdown_pct"] = stats["max_drawdown"] * 100

        # Trade statistics
        stats["total_trades"] = len(trades_df)
        closes = trades_df[trades_df["side"] == "sell"] if not trades_df.empty else trades_df
        if closes.empty:
            stats["closed_trades"] = 0
            stats["winning_trades"] = 0
            stats["losing_trades"] = 0
            stats["win_rate"] = 0.0
            stats["profit_factor"] = 0.0
            stats["sharpe_ratio"] = 0.0
            return stats

        pnls = closes["pnl"]
        winners = pnls[pnls > 0]
        losers = pnls[pnls < 0]
        stats["closed_trades"] = len(closes)
        stats["winning_trades"] = len(winners)
        stats["losing_trades"] = len(closes) - len(winners)
        stats["win_rate"] = len(winners) / len(closes)

        # Profit factor
        gross_profit = float(winners.sum())
        gross_loss = abs(float(losers.sum()))
        if gross_loss > 0:
            stats["profit_factor"] = StatsCalculator._safe_ratio(gross_profit / gross_loss)
        else:
            # No losses - use MAX_RATIO if there were profits
            stats["profit_factor"] = MAX_RATIO if gross_profit > 0 else 0.0

        # Sharpe on per-trade returns between consecutive closes (not annualized)
        balances = np.concatenate([[initial_balance], closes["balance"].values.astype(float)])
        returns = np.diff(balances) / balances[:-1]
        std_ret = returns.std()
        stats["sharpe_ratio"] = float(returns.mean() / std_ret) if std_ret > 0 else 0.0

        return stats
