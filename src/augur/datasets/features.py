"""Feature selection and target construction for the sequence model."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd

from ..core.table import TimeSeriesTable
from ..errors import AlignmentError

logger = logging.getLogger(__name__)

BASE_FEATURES = ['close', 'volume', 'RSI', 'MACD']
AUXILIARY_FEATURES = ['fear_greed_index', 'exchange_reserves', 'mvrv_z_score', 'nupl']


@dataclass(frozen=True)
class FeatureSpec:
    """What to predict, from which columns, how far ahead, over which window."""

    target: str = 'close'
    features: List[str] = field(default_factory=lambda: list(BASE_FEATURES))
    horizon: int = 30
    window_length: int = 60

    def __post_init__(self):
        if self.horizon < 0:
            raise ValueError(f"horizon must be >= 0, got {self.horizon}")
        if self.window_length < 1:
            raise ValueError(f"window_length must be >= 1, got {self.window_length}")
        if not self.features:
            raise ValueError("FeatureSpec needs at least one feature column")

    @property
    def target_column(self) -> str:
        return f'{self.target}_future'

    @property
    def required_columns(self) -> List[str]:
        cols = list(self.features)
        if self.target not in cols:
            cols.append(self.target)
        return cols


@dataclass(frozen=True)
class FeatureSet:
    """Rows usable for training: features, shifted target and their timestamps."""

    features: np.ndarray
    target: np.ndarray
    timestamps: pd.DatetimeIndex
    columns: List[str]

    def __len__(self) -> int:
        return len(self.target)


def default_feature_columns(table: TimeSeriesTable) -> List[str]:
    """Base price/indicator features plus whichever auxiliaries survived alignment."""
    cols = [c for c in BASE_FEATURES if c in table]
    skipped = [c for c in AUXILIARY_FEATURES if c not in table]
    if skipped:
        logger.info("Auxiliary features unavailable, omitting: %s", skipped)
    cols.extend(c for c in AUXILIARY_FEATURES if c in table)
    return cols


def validate_feature_spec(table: TimeSeriesTable, spec: FeatureSpec) -> None:
    """Raise AlignmentError if a column required by ``spec`` is absent."""
    for col in spec.required_columns:
        if col not in table:
            raise AlignmentError("Feature column missing from combined table",
                                 stage='features', column=col)
        # rejects boolean/string columns
        table.numeric(col)


def build_features(table: TimeSeriesTable, spec: FeatureSpec) -> FeatureSet:
    """Build the feature matrix and the horizon-shifted target.

    Row i's target is ``table[target][i + horizon]``. Rows whose shifted
    target would read past the end, or that have NaN in any required
    column, are dropped.
    """
    validate_feature_spec(table, spec)

    target = table.numeric(spec.target)
    shifted = np.full(len(target), np.nan)
    if spec.horizon < len(target):
        shifted[:len(target) - spec.horizon] = target[spec.horizon:]

    X = np.column_stack([table.numeric(c) for c in spec.features]) if len(table) else \
        np.empty((0, len(spec.features)))
    required = np.column_stack([X, target, shifted]) if len(table) else np.empty((0, 1))
    keep = ~np.isnan(required).any(axis=1)

    dropped = int(len(keep) - keep.sum())
    if dropped:
        logger.debug("Dropped %d incomplete rows while building features", dropped)

    return FeatureSet(
        features=X[keep],
        target=shifted[keep],
        timestamps=table.timestamps[keep],
        columns=list(spec.features),
    )


def latest_feature_rows(table: TimeSeriesTable, spec: FeatureSpec) -> np.ndarray:
    """Most recent ``window_length`` complete feature rows, unscaled.

    Used as the seed window for forecasting, so it does not require the
    shifted target to exist.
    """
    validate_feature_spec(table, spec)
    X = np.column_stack([table.numeric(c) for c in spec.features])
    X = X[~np.isnan(X).any(axis=1)]
    if len(X) < spec.window_length:
        raise AlignmentError(
            f"Need {spec.window_length} complete rows for a forecast window, have {len(X)}",
            stage='features',
        )
    return X[-spec.window_length:]
