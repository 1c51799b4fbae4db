"""Stacked-LSTM sequence predictor.

Lifecycle is a two-state machine: a predictor starts UNTRAINED and
``fit`` is the only way into TRAINED. The predictor knows nothing about
scaling; callers hand it the fitted scalers it needs to interpret its own
output.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..datasets.scaling import MinMaxScaler
from ..errors import ModelNotTrainedError
from ..eval.metrics import EvaluationMetrics, regression_metrics

logger = logging.getLogger(__name__)


class ModelState(str, Enum):
    UNTRAINED = 'untrained'
    TRAINED = 'trained'


@dataclass(frozen=True)
class EvaluationResult:
    """Metrics plus the de-scaled series they were computed on."""

    metrics: EvaluationMetrics
    y_true: np.ndarray
    y_pred: np.ndarray


@dataclass(frozen=True)
class ForecastResult:
    """De-scaled predictions for steps 1..N past the last known timestamp."""

    values: np.ndarray
    timestamps: Optional[pd.DatetimeIndex] = None

    def __len__(self) -> int:
        return len(self.values)

    def to_series(self) -> pd.Series:
        return pd.Series(self.values, index=self.timestamps, name='forecast')


@dataclass
class TrainingHistory:
    loss: List[float] = field(default_factory=list)
    val_loss: List[float] = field(default_factory=list)


def build_lstm_model(input_shape: Tuple[int, int], units: int = 50, dropout: float = 0.2,
                     seed: Optional[int] = None):
    """Two stacked LSTM layers with dropout and a single linear output.

    Raises:
        ImportError: If tensorflow is not installed
    """
    try:
        from tensorflow import keras
    except ImportError:
        raise ImportError(
            "TensorFlow is required for the LSTM predictor. "
            "Install it with: pip install tensorflow"
        )

    if seed is not None:
        keras.utils.set_random_seed(seed)

    model = keras.Sequential([
        keras.Input(shape=tuple(input_shape)),
        keras.layers.LSTM(units, return_sequences=True),
        keras.layers.Dropout(dropout),
        keras.layers.LSTM(units, return_sequences=False),
        keras.layers.Dropout(dropout),
        keras.layers.Dense(1),
    ])
    model.compile(optimizer='adam', loss='mean_squared_error')
    return model


def roll_window(window: np.ndarray, value: float, slot: Optional[int] = 0) -> np.ndarray:
    """Next forecast window: drop the oldest row, append a synthetic row.

    The synthetic row copies the most recent row and overwrites ``slot``
    with ``value`` (no slot: the row is carried over as is); the other
    engineered features are carried forward unchanged.
    """
    window = np.asarray(window, dtype=float)
    synthetic = window[-1].copy()
    if slot is not None:
        synthetic[slot] = value
    return np.vstack([window[1:], synthetic[np.newaxis, :]])


class SequencePredictor:
    """Owns one sequence model from build through forecasting.

    Args:
        units: Units per LSTM layer
        dropout: Dropout rate after each LSTM layer
        model_factory: Callable ``(input_shape, units, dropout, seed) -> model``;
            the returned object needs keras-style ``fit`` and ``predict``
        random_seed: Seed passed to the factory
    """

    def __init__(
        self,
        units: int = 50,
        dropout: float = 0.2,
        model_factory: Optional[Callable] = None,
        random_seed: Optional[int] = None,
    ):
        self.units = units
        self.dropout = dropout
        self.model_factory = model_factory or build_lstm_model
        self.random_seed = random_seed
        self.state = ModelState.UNTRAINED
        self.history: Optional[TrainingHistory] = None
        self._model = None
        self._input_shape: Optional[Tuple[int, int]] = None

    @property
    def is_trained(self) -> bool:
        return self.state == ModelState.TRAINED

    def build(self, input_shape: Tuple[int, int], units: Optional[int] = None):
        """Construct an untrained model for windows of ``input_shape``."""
        if units is not None:
            self.units = units
        self._input_shape = (int(input_shape[0]), int(input_shape[1]))
        self._model = self.model_factory(self._input_shape, self.units, self.dropout, self.random_seed)
        self.state = ModelState.UNTRAINED
        return self._model

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        epochs: int = 50,
        batch_size: int = 32,
        validation_split: float = 0.2,
    ) -> TrainingHistory:
        """Train on windows ``X`` (n, L, f) and scaled labels ``y`` (n,).

        Builds the model first if needed. Training is not cancellable; bound
        its cost with ``epochs``.
        """
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float).reshape(-1, 1)
        if len(X) == 0:
            raise ValueError("Cannot fit on an empty training set")
        if X.ndim != 3:
            raise ValueError(f"Expected windows of shape (n, L, f), got {X.shape}")

        if self._model is None or self._input_shape != X.shape[1:]:
            self.build(X.shape[1:])

        logger.info("Training on %d windows of shape %s for %d epochs", len(X), X.shape[1:], epochs)
        result = self._model.fit(
            X, y,
            epochs=epochs,
            batch_size=batch_size,
            validation_split=validation_split,
            shuffle=False,
            verbose=0,
        )

        raw: Dict[str, list] = getattr(result, 'history', None) or {}
        history = TrainingHistory(
            loss=[float(v) for v in raw.get('loss', [])],
            val_loss=[float(v) for v in raw.get('val_loss', [])],
        )
        for epoch, loss in enumerate(history.loss, start=1):
            val = history.val_loss[epoch - 1] if epoch <= len(history.val_loss) else float('nan')
            logger.debug("Epoch %d/%d loss=%.4f val_loss=%.4f", epoch, epochs, loss, val)

        self.history = history
        self.state = ModelState.TRAINED
        return history

    def _require_trained(self, operation: str) -> None:
        if not self.is_trained:
            raise ModelNotTrainedError(f"Cannot {operation}: model has not been trained", stage='predict')

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Scaled predictions, one per window."""
        self._require_trained('predict')
        X = np.asarray(X, dtype=float)
        if len(X) == 0:
            return np.empty(0)
        return np.asarray(self._model.predict(X, verbose=0), dtype=float).reshape(-1)

    def evaluate(self, X: np.ndarray, y: np.ndarray, target_scaler: MinMaxScaler) -> EvaluationResult:
        """Predict on test windows and score in the original units."""
        self._require_trained('evaluate')
        y_pred_scaled = self.predict(X)
        y_true = target_scaler.inverse_transform(np.asarray(y, dtype=float).reshape(-1, 1)).reshape(-1)
        y_pred = target_scaler.inverse_transform(y_pred_scaled.reshape(-1, 1)).reshape(-1)
        metrics = regression_metrics(y_true, y_pred)
        logger.info("Evaluation: %s", {k: round(v, 4) for k, v in metrics.to_dict().items()})
        return EvaluationResult(metrics=metrics, y_true=y_true, y_pred=y_pred)

    def forecast(
        self,
        last_window: np.ndarray,
        steps: int,
        target_scaler: MinMaxScaler,
        feature_scaler: Optional[MinMaxScaler] = None,
        target_feature_index: Optional[int] = 0,
    ) -> ForecastResult:
        """Iterated multi-step forecast.

        Each step predicts one scaled value, de-scales it, and rolls the
        window forward with ``roll_window``. When ``feature_scaler`` is given
        the prediction is re-expressed in that feature column's scale before
        it is written into the synthetic row; otherwise the target-scaled
        value is written as is.

        Args:
            last_window: Scaled window (L, f)
            steps: Number of steps to forecast
            target_scaler: Fitted scaler of the target
            feature_scaler: Fitted scaler of the features
            target_feature_index: Feature slot holding the target series, or
                None when the target is not one of the features

        Returns:
            ForecastResult with de-scaled values in order
        """
        self._require_trained('forecast')
        window = np.asarray(last_window, dtype=float)
        if window.ndim != 2:
            raise ValueError(f"Expected a single window of shape (L, f), got {window.shape}")

        values = []
        for _ in range(steps):
            scaled = float(self.predict(window[np.newaxis, ...])[0])
            value = float(target_scaler.inverse_transform([[scaled]])[0, 0])
            values.append(value)
            if feature_scaler is not None and target_feature_index is not None:
                slot_value = float(feature_scaler.transform_column([value], target_feature_index)[0])
            else:
                slot_value = scaled
            window = roll_window(window, slot_value, target_feature_index)

        return ForecastResult(values=np.asarray(values))
