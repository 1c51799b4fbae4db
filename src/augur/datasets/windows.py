"""Fixed-length overlapping windows and the chronological train/test split."""
from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class WindowedDataset:
    """Windows ``X`` of shape (n, window_length, n_features) and labels ``y`` (n,)."""

    X: np.ndarray
    y: np.ndarray

    def __len__(self) -> int:
        return len(self.y)

    @property
    def window_length(self) -> int:
        return self.X.shape[1]

    @property
    def n_features(self) -> int:
        return self.X.shape[2]


def make_windows(features: np.ndarray, target: np.ndarray, window_length: int) -> WindowedDataset:
    """Slice scaled rows into windows.

    Window i covers rows ``[i, i + window_length)`` and is labelled with
    ``target[i + window_length]``, for ``i`` in ``[0, n - window_length)``.
    """
    features = np.asarray(features, dtype=float)
    target = np.asarray(target, dtype=float).reshape(-1)
    if features.ndim != 2:
        raise ValueError(f"features must be 2-D, got shape {features.shape}")
    if len(features) != len(target):
        raise ValueError(f"features ({len(features)}) and target ({len(target)}) lengths differ")
    if window_length < 1:
        raise ValueError(f"window_length must be >= 1, got {window_length}")

    n = max(len(features) - window_length, 0)
    X = np.empty((n, window_length, features.shape[1]))
    for i in range(n):
        X[i] = features[i:i + window_length]
    y = target[window_length:window_length + n].copy()
    return WindowedDataset(X=X, y=y)


def split_train_test(dataset: WindowedDataset, ratio: float = 0.8) -> Tuple[WindowedDataset, WindowedDataset]:
    """Leading ``floor(ratio * n)`` windows train, the rest test. No shuffling."""
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"ratio must be within [0, 1], got {ratio}")
    split = int(np.floor(ratio * len(dataset)))
    train = WindowedDataset(X=dataset.X[:split].copy(), y=dataset.y[:split].copy())
    test = WindowedDataset(X=dataset.X[split:].copy(), y=dataset.y[split:].copy())
    return train, test
