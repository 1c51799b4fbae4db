"""Evaluation metrics."""
from .metrics import EvaluationMetrics, r_squared, regression_metrics
