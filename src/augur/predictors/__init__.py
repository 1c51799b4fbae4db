"""Sequence predictors."""
from .lstm import (
    EvaluationResult,
    ForecastResult,
    ModelState,
    SequencePredictor,
    TrainingHistory,
    build_lstm_model,
    roll_window,
)
