"""Regression metrics on de-scaled predictions."""

import numpy as np
from dataclasses import dataclass
from typing import Dict

from sklearn.metrics import mean_absolute_error, mean_squared_error


@dataclass(frozen=True)
class EvaluationMetrics:
    """Container for regression metrics."""

    mse: float
    mae: float
    rmse: float
    r2: float

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            'MSE': self.mse,
            'MAE': self.mae,
            'RMSE': self.rmse,
            'R2': self.r2,
        }


def r_squared(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Coefficient of determination; NaN when the actuals have no variance."""
    y_true = np.asarray(y_true, dtype=float).reshape(-1)
    y_pred = np.asarray(y_pred, dtype=float).reshape(-1)
    ss_total = float(np.sum((y_true - y_true.mean()) ** 2))
    if ss_total == 0.0:
        return float('nan')
    ss_residual = float(np.sum((y_true - y_pred) ** 2))
    return 1.0 - ss_residual / ss_total


def regression_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> EvaluationMetrics:
    """Compute MSE, MAE, RMSE and R2.

    Args:
        y_true: Actual values (original scale)
        y_pred: Predicted values (original scale)

    Returns:
        EvaluationMetrics
    """
    y_true = np.asarray(y_true, dtype=float).reshape(-1)
    y_pred = np.asarray(y_pred, dtype=float).reshape(-1)
    if len(y_true) == 0:
        raise ValueError("Cannot evaluate on an empty set")
    if len(y_true) != len(y_pred):
        raise ValueError(f"Length mismatch: {len(y_true)} actuals vs {len(y_pred)} predictions")

    mse = float(mean_squared_error(y_true, y_pred))
    return EvaluationMetrics(
        mse=mse,
        mae=float(mean_absolute_error(y_true, y_pred)),
        rmse=float(np.sqrt(mse)),
        r2=r_squared(y_true, y_pred),
    )
