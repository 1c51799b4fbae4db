"""Error taxonomy for the forecasting pipeline."""
from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline failures.

    Carries enough context (symbol, stage, column) to diagnose a failure
    without inspecting pipeline internals.
    """

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        stage: Optional[str] = None,
        column: Optional[str] = None,
    ):
        self.symbol = symbol
        self.stage = stage
        self.column = column
        super().__init__(message)

    def __str__(self) -> str:
        context = [
            f"{name}={value}"
            for name, value in (("symbol", self.symbol), ("stage", self.stage), ("column", self.column))
            if value is not None
        ]
        base = super().__str__()
        if not context:
            return base
        return f"{base} [{', '.join(context)}]"

    def with_context(self, symbol: Optional[str] = None, stage: Optional[str] = None) -> "PipelineError":
        """Fill in symbol/stage if they were not known where the error was raised."""
        if self.symbol is None:
            self.symbol = symbol
        if self.stage is None:
            self.stage = stage
        return self


class DataUnavailableError(PipelineError):
    """A required source returned no data."""


class AlignmentError(PipelineError):
    """A required column is missing (or collides) after alignment."""


class ScalerNotFitError(PipelineError):
    """transform/inverse_transform called before fit."""


class ModelNotTrainedError(PipelineError):
    """predict/evaluate/forecast called before fit."""


class ColumnTypeError(PipelineError):
    """Operation applied to a column of the wrong kind."""


class DegenerateColumnWarning(UserWarning):
    """A scaled column is constant; it is mapped to the lower bound of the range."""
