"""augur: indicator, alignment, LSTM forecasting and signal/risk pipeline for crypto assets."""
from .config import PipelineConfig
from .errors import (
    AlignmentError,
    ColumnTypeError,
    DataUnavailableError,
    DegenerateColumnWarning,
    ModelNotTrainedError,
    PipelineError,
    ScalerNotFitError,
)
from .pipeline import CollectedData, ForecastPipeline, PipelineResult

__version__ = "0.1.0"
