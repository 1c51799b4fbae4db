"""Shared fixtures: synthetic price history and a stand-in sequence model."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd
import pytest


def make_price_frame(n_bars: int = 320, seed: int = 42, start: str = "2023-01-01") -> pd.DataFrame:
    """Daily OHLCV random walk with midnight-UTC timestamps."""
    rng = np.random.default_rng(seed)
    close = 30000.0 * np.cumprod(1 + rng.normal(0, 0.02, n_bars))
    open_ = np.concatenate([[close[0]], close[:-1]])
    high = np.maximum(open_, close) * (1 + rng.uniform(0, 0.01, n_bars))
    low = np.minimum(open_, close) * (1 - rng.uniform(0, 0.01, n_bars))
    return pd.DataFrame({
        "timestamp": pd.date_range(start, periods=n_bars, freq="D", tz="UTC"),
        "open": open_,
        "high": high,
        "low": low,
        "close": close,
        "volume": rng.uniform(100, 1000, n_bars),
    })


class _History:
    def __init__(self, history):
        self.history = history


class PersistenceModel:
    """Predicts the last value of the first feature in each window."""

    def __init__(self, input_shape):
        self.input_shape = input_shape
        self.fit_calls = []

    def fit(self, X, y, epochs=1, batch_size=32, validation_split=0.0, shuffle=True, verbose=0):
        self.fit_calls.append({"n": len(X), "epochs": epochs, "shuffle": shuffle})
        return _History({
            "loss": [1.0 / (e + 1) for e in range(epochs)],
            "val_loss": [1.5 / (e + 1) for e in range(epochs)],
        })

    def predict(self, X, verbose=0):
        X = np.asarray(X)
        return X[:, -1, 0:1]


def persistence_factory(input_shape, units, dropout, seed):
    return PersistenceModel(input_shape)


@pytest.fixture
def price_frame():
    return make_price_frame()


@pytest.fixture
def price_table(price_frame):
    from augur.core.table import TimeSeriesTable

    return TimeSeriesTable.from_ohlcv(price_frame)


@pytest.fixture
def model_factory():
    return persistence_factory
