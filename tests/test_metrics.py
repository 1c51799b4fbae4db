"""Tests for regression metrics."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import math

import numpy as np
import pytest

from augur.eval import regression_metrics, r_squared


def test_perfect_prediction():
    y = np.array([1.0, 2.0, 3.0])
    m = regression_metrics(y, y)
    assert m.mse == 0.0
    assert m.mae == 0.0
    assert m.r2 == pytest.approx(1.0)


def test_known_values():
    m = regression_metrics(np.array([1.0, 2.0, 3.0]), np.array([2.0, 2.0, 2.0]))
    assert m.mse == pytest.approx(2 / 3)
    assert m.mae == pytest.approx(2 / 3)
    assert m.rmse == pytest.approx(math.sqrt(2 / 3))
    assert m.r2 == pytest.approx(0.0)
    assert set(m.to_dict()) == {"MSE", "MAE", "RMSE", "R2"}


def test_r2_nan_for_constant_truth():
    assert math.isnan(r_squared(np.array([5.0, 5.0]), np.array([4.0, 6.0])))


def test_empty_input():
    with pytest.raises(ValueError):
        regression_metrics(np.array([]), np.array([]))


def test_length_mismatch():
    with pytest.raises(ValueError):
        regression_metrics(np.array([1.0, 2.0]), np.array([1.0]))
