"""Tests for the single-strategy backtest."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd
import pytest

from augur.backtest import STRATEGIES, StatsCalculator, run_backtest
from augur.core.table import ColumnKind, TimeSeriesTable
from augur.errors import DataUnavailableError
from augur.indicators import add_technical_indicators
from augur.risk import MAX_RATIO


def _table(columns: dict, kinds: dict = None) -> TimeSeriesTable:
    n = len(next(iter(columns.values())))
    return TimeSeriesTable(pd.date_range("2024-01-01", periods=n, freq="D", tz="UTC"), columns, kinds=kinds)


@pytest.fixture
def crossover_table():
    # MA_50 - MA_200 goes positive at bar 2 and negative at bar 5
    return _table({
        "close": [10.0, 10.0, 10.0, 12.0, 14.0, 13.0, 11.0, 9.0],
        "MA_50": [1.0, 1.0, 3.0, 3.0, 3.0, 1.0, 1.0, 1.0],
        "MA_200": [2.0] * 8,
    })


class TestRunBacktest:
    def test_ma_crossover_round_trip(self, crossover_table):
        result = run_backtest(crossover_table, strategy="ma_crossover", initial_balance=10000.0)
        trades = result.trades_df
        assert trades["side"].tolist() == ["buy", "sell"]
        assert trades["price"].tolist() == [10.0, 13.0]
        assert trades["pnl"].iloc[-1] == pytest.approx(3000.0)
        assert result.stats["final_balance"] == pytest.approx(13000.0)
        assert result.stats["win_rate"] == 1.0
        assert result.stats["profit_factor"] == MAX_RATIO

    def test_equity_curve_tracks_every_bar(self, crossover_table):
        result = run_backtest(crossover_table, strategy="ma_crossover")
        equity = result.equity_curve["equity"].to_numpy()
        assert len(equity) == len(crossover_table)
        assert equity[4] == pytest.approx(14000.0)
        assert result.stats["max_drawdown"] == pytest.approx(1000.0 / 14000.0)

    def test_open_position_liquidated_at_end(self):
        table = _table(
            {
                "close": [10.0, 8.0, 9.0, 6.0],
                "buy_signal": [False, True, False, False],
                "sell_signal": [False, False, False, False],
            },
            kinds={"buy_signal": ColumnKind.BOOLEAN, "sell_signal": ColumnKind.BOOLEAN},
        )
        result = run_backtest(table, strategy="composite", initial_balance=800.0)
        assert result.trades_df["side"].tolist() == ["buy", "sell"]
        assert result.stats["final_balance"] == pytest.approx(600.0)
        assert result.stats["losing_trades"] == 1
        assert result.stats["profit_factor"] == 0.0

    def test_rsi_strategy_needs_crossing_into_zone(self):
        table = _table({
            "close": [10.0, 9.0, 8.0, 9.0, 12.0, 13.0],
            "RSI": [40.0, 25.0, 20.0, 50.0, 75.0, 80.0],
        })
        result = run_backtest(table, strategy="rsi_oversold")
        trades = result.trades_df
        assert trades["price"].tolist() == [9.0, 12.0]

    def test_missing_columns_means_no_trades(self):
        table = _table({"close": [1.0, 2.0, 3.0]})
        result = run_backtest(table, strategy="macd_signal", initial_balance=500.0)
        assert result.trades_df.empty
        assert result.stats["final_balance"] == pytest.approx(500.0)
        assert result.stats["total_trades"] == 0

    def test_date_range(self, crossover_table):
        result = run_backtest(crossover_table, strategy="ma_crossover", start="2024-01-04")
        assert result.trades_df.empty
        with pytest.raises(DataUnavailableError):
            run_backtest(crossover_table, start="2025-01-01")

    def test_unknown_strategy(self, crossover_table):
        with pytest.raises(ValueError):
            run_backtest(crossover_table, strategy="moon")

    def test_all_strategies_run_on_real_indicators(self, price_table):
        enriched = add_technical_indicators(price_table)
        for name in STRATEGIES:
            result = run_backtest(enriched, strategy=name)
            assert np.isfinite(result.stats["final_balance"])
            assert 0.0 <= result.stats["max_drawdown"] <= 1.0


class TestStats:
    def test_empty(self):
        stats = StatsCalculator.compute(
            pd.DataFrame(columns=["timestamp", "equity"]),
            pd.DataFrame(columns=["timestamp", "side", "price", "quantity", "pnl", "balance"]),
            1000.0,
        )
        assert stats["final_balance"] == 1000.0
        assert stats["win_rate"] == 0.0
        assert stats["sharpe_ratio"] == 0.0

    def test_sharpe_on_closed_trades(self):
        trades = pd.DataFrame({
            "side": ["buy", "sell", "buy", "sell"],
            "pnl": [0.0, 100.0, 0.0, -55.0],
            "balance": [1000.0, 1100.0, 1100.0, 1045.0],
        })
        equity = pd.DataFrame({
            "timestamp": pd.date_range("2024-01-01", periods=4, freq="D", tz="UTC"),
            "equity": [1000.0, 1100.0, 1100.0, 1045.0],
        })
        stats = StatsCalculator.compute(equity, trades, 1000.0)
        returns = np.array([0.1, -0.05])
        assert stats["sharpe_ratio"] == pytest.approx(returns.mean() / returns.std())
        assert stats["profit_factor"] == pytest.approx(100.0 / 55.0)
        assert stats["closed_trades"] == 2
