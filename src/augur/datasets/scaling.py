"""Min-max scaling with an explicit, immutable fitted state."""
import warnings
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from sklearn.preprocessing import MinMaxScaler as _SkMinMaxScaler

from ..errors import DegenerateColumnWarning, ScalerNotFitError


@dataclass(frozen=True)
class ScalerState:
    """Per-column minimum/maximum observed at fit time plus the output range."""

    data_min: Tuple[float, ...]
    data_max: Tuple[float, ...]
    feature_range: Tuple[float, float]
    columns: Tuple[str, ...] = ()

    @property
    def n_features(self) -> int:
        return len(self.data_min)

    @property
    def degenerate(self) -> Tuple[bool, ...]:
        return tuple(hi == lo for lo, hi in zip(self.data_min, self.data_max))


def _as_matrix(X) -> np.ndarray:
    arr = np.asarray(X, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got shape {arr.shape}")
    return arr


class MinMaxScaler:
    """Scale each column into ``feature_range`` using fit-time min and max.

    A column whose max equals its min maps every value to the lower bound
    of the output range (and back to the constant on inverse), instead of
    dividing by zero. A ``DegenerateColumnWarning`` is emitted at fit time.
    """

    def __init__(self, feature_range: Tuple[float, float] = (0.0, 1.0)):
        lo, hi = feature_range
        if not hi > lo:
            raise ValueError(f"feature_range must be increasing, got {feature_range}")
        self.feature_range = (float(lo), float(hi))
        self._state: Optional[ScalerState] = None

    @property
    def state(self) -> ScalerState:
        if self._state is None:
            raise ScalerNotFitError("Scaler has not been fit", stage='scale')
        return self._state

    @property
    def is_fit(self) -> bool:
        return self._state is not None

    def fit(self, X, columns: Optional[Sequence[str]] = None) -> 'MinMaxScaler':
        """Fit per-column min and max.

        Args:
            X: Matrix (n_samples, n_features) or a 1-D vector
            columns: Optional column names for diagnostics

        Returns:
            self for chaining
        """
        data = _as_matrix(X)
        sk = _SkMinMaxScaler(feature_range=self.feature_range).fit(data)
        names = tuple(columns) if columns is not None else ()
        state = ScalerState(
            data_min=tuple(float(v) for v in sk.data_min_),
            data_max=tuple(float(v) for v in sk.data_max_),
            feature_range=self.feature_range,
            columns=names,
        )
        for i, flat in enumerate(state.degenerate):
            if flat:
                label = names[i] if i < len(names) else f"column {i}"
                warnings.warn(
                    f"{label} is constant ({state.data_min[i]}); scaling it to {self.feature_range[0]}",
                    DegenerateColumnWarning,
                    stacklevel=2,
                )
        self._state = state
        return self

    def _check(self, data: np.ndarray) -> ScalerState:
        state = self.state
        if data.shape[1] != state.n_features:
            raise ValueError(
                f"Expected {state.n_features} features (as at fit time), got {data.shape[1]}"
            )
        return state

    def transform(self, X) -> np.ndarray:
        data = _as_matrix(X)
        state = self._check(data)
        lo, hi = state.feature_range
        mins = np.asarray(state.data_min)
        ranges = np.asarray(state.data_max) - mins
        flat = ranges == 0
        safe = np.where(flat, 1.0, ranges)
        scaled = (data - mins) / safe * (hi - lo) + lo
        scaled[:, flat] = lo
        return scaled

    def inverse_transform(self, X) -> np.ndarray:
        data = _as_matrix(X)
        state = self._check(data)
        lo, hi = state.feature_range
        mins = np.asarray(state.data_min)
        ranges = np.asarray(state.data_max) - mins
        return (data - lo) / (hi - lo) * ranges + mins

    def transform_column(self, values, index: int) -> np.ndarray:
        """Scale raw values as if they belonged to fit-time column ``index``."""
        state = self.state
        values = np.asarray(values, dtype=float)
        lo, hi = state.feature_range
        col_min, col_max = state.data_min[index], state.data_max[index]
        if col_max == col_min:
            return np.full_like(values, lo)
        return (values - col_min) / (col_max - col_min) * (hi - lo) + lo

    def fit_transform(self, X, columns: Optional[Sequence[str]] = None) -> np.ndarray:
        return self.fit(X, columns=columns).transform(X)
