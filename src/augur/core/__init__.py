"""Core data structures."""
from .table import (
    OHLCV_COLUMNS,
    ColumnKind,
    MissingReason,
    OHLCVRow,
    TimeSeriesTable,
)

__all__ = [
    'OHLCV_COLUMNS',
    'ColumnKind',
    'MissingReason',
    'OHLCVRow',
    'TimeSeriesTable',
]
