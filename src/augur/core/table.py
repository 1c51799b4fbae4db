"""Typed, immutable time-series table.

Every pipeline stage consumes a ``TimeSeriesTable`` and returns a new one.
Column arrays are stored read-only and accessors hand out copies, so no
stage can observe or alter another stage's working state.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..errors import ColumnTypeError, PipelineError

OHLCV_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


class ColumnKind(str, Enum):
    """Declared type of a table column."""

    NUMERIC = 'numeric'
    BOOLEAN = 'boolean'
    STRING = 'string'


class MissingReason(str, Enum):
    """Why a numeric cell holds NaN."""

    WARMUP = 'warmup'      # not enough history yet to compute the value
    NO_DATA = 'no_data'    # nothing was collected for this timestamp


@dataclass(frozen=True)
class OHLCVRow:
    """One candle of the primary price series."""

    timestamp: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float


def _infer_kind(values: np.ndarray) -> ColumnKind:
    if values.dtype == bool:
        return ColumnKind.BOOLEAN
    if np.issubdtype(values.dtype, np.number):
        return ColumnKind.NUMERIC
    return ColumnKind.STRING


def _coerce(values, kind: ColumnKind) -> np.ndarray:
    if kind == ColumnKind.NUMERIC:
        arr = np.asarray(values, dtype=float)
    elif kind == ColumnKind.BOOLEAN:
        arr = np.asarray(values, dtype=bool)
    else:
        arr = np.asarray(values, dtype=object)
    arr = arr.copy()
    arr.flags.writeable = False
    return arr


def _to_index(timestamps) -> pd.DatetimeIndex:
    index = pd.DatetimeIndex(pd.to_datetime(timestamps, utc=True))
    index.name = 'timestamp'
    return index


class TimeSeriesTable:
    """Ordered timestamps plus equally long, typed columns.

    Invariants:
        - timestamps are strictly increasing and unique
        - every column has exactly ``len(timestamps)`` entries
        - absent numeric values are NaN, never dropped

    Numeric columns may record a ``warmup`` count: the number of leading
    entries that are NaN because the column needs history before it can be
    computed (e.g. a 200-period moving average).
    """

    def __init__(
        self,
        timestamps,
        columns: Optional[Mapping[str, Iterable]] = None,
        kinds: Optional[Mapping[str, ColumnKind]] = None,
        warmup: Optional[Mapping[str, int]] = None,
    ):
        index = _to_index(timestamps)
        if len(index) > 1 and not (index[1:] > index[:-1]).all():
            raise PipelineError("Timestamps must be strictly increasing and unique", stage='table')

        kinds = dict(kinds or {})
        data: Dict[str, np.ndarray] = {}
        resolved: Dict[str, ColumnKind] = {}
        for name, values in (columns or {}).items():
            raw = np.asarray(values)
            kind = ColumnKind(kinds[name]) if name in kinds else _infer_kind(raw)
            arr = _coerce(raw, kind)
            if arr.ndim != 1 or len(arr) != len(index):
                raise PipelineError(
                    f"Column length {len(arr)} does not match {len(index)} timestamps",
                    stage='table',
                    column=name,
                )
            data[name] = arr
            resolved[name] = kind

        self._index = index
        self._data = data
        self._kinds = resolved
        self._warmup = {k: int(v) for k, v in (warmup or {}).items() if k in data}

    # ------------------------------------------------------------------ builders

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        timestamp_col: Optional[str] = 'timestamp',
        kinds: Optional[Mapping[str, ColumnKind]] = None,
    ) -> 'TimeSeriesTable':
        """Build a table from a DataFrame.

        The timestamp is taken from ``timestamp_col`` when present, otherwise
        from the DataFrame index. Rows are sorted and duplicate timestamps
        keep the last observation.
        """
        frame = df.copy()
        if timestamp_col is not None and timestamp_col in frame.columns:
            frame[timestamp_col] = pd.to_datetime(frame[timestamp_col], utc=True)
            frame = frame.set_index(timestamp_col)
        else:
            frame.index = pd.to_datetime(frame.index, utc=True)
        frame = frame[~frame.index.duplicated(keep='last')].sort_index()
        return cls(frame.index, {c: frame[c].to_numpy() for c in frame.columns}, kinds=kinds)

    @classmethod
    def from_ohlcv(cls, rows: Union[pd.DataFrame, Sequence[OHLCVRow], Sequence[dict]]) -> 'TimeSeriesTable':
        """Build the primary price table from OHLCV rows."""
        if isinstance(rows, pd.DataFrame):
            df = rows
        else:
            df = pd.DataFrame([r.__dict__ if isinstance(r, OHLCVRow) else dict(r) for r in rows])
        missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
        if missing:
            raise PipelineError(f"OHLCV data is missing columns {missing}", stage='table')
        df = df[[c for c in ['timestamp'] + OHLCV_COLUMNS if c in df.columns]]
        kinds = {c: ColumnKind.NUMERIC for c in OHLCV_COLUMNS}
        return cls.from_frame(df, kinds=kinds)

    # ------------------------------------------------------------------ access

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, name: str) -> bool:
        return name in self._data

    def __repr__(self) -> str:
        return f"TimeSeriesTable(rows={len(self)}, columns={self.columns})"

    @property
    def timestamps(self) -> pd.DatetimeIndex:
        return self._index.copy()

    @property
    def columns(self) -> List[str]:
        return list(self._data)

    @property
    def kinds(self) -> Dict[str, ColumnKind]:
        return dict(self._kinds)

    def kind(self, name: str) -> ColumnKind:
        self._require(name)
        return self._kinds[name]

    def warmup(self, name: str) -> int:
        self._require(name)
        return self._warmup.get(name, 0)

    def column(self, name: str) -> np.ndarray:
        """Return a writable copy of a column."""
        self._require(name)
        return self._data[name].copy()

    def numeric(self, name: str) -> np.ndarray:
        """Return a copy of a NUMERIC column, rejecting other kinds."""
        self._require(name)
        if self._kinds[name] != ColumnKind.NUMERIC:
            raise ColumnTypeError(
                f"Expected a numeric column, got {self._kinds[name].value}",
                stage='table',
                column=name,
            )
        return self._data[name].copy()

    def series(self, name: str) -> pd.Series:
        return pd.Series(self.column(name), index=self.timestamps, name=name)

    def to_frame(self) -> pd.DataFrame:
        """Snapshot of the table as a DataFrame indexed by timestamp."""
        return pd.DataFrame({c: self.column(c) for c in self._data}, index=self.timestamps)

    def non_null_count(self, name: str) -> int:
        self._require(name)
        values = self._data[name]
        if self._kinds[name] != ColumnKind.NUMERIC:
            return len(values)
        return int(np.count_nonzero(~np.isnan(values)))

    def missing_reasons(self, name: str) -> List[Optional[MissingReason]]:
        """Per-cell reason for NaN in a numeric column (None where present)."""
        values = self.numeric(name)
        warm = self._warmup.get(name, 0)
        reasons: List[Optional[MissingReason]] = []
        for i, v in enumerate(values):
            if not np.isnan(v):
                reasons.append(None)
            elif i < warm:
                reasons.append(MissingReason.WARMUP)
            else:
                reasons.append(MissingReason.NO_DATA)
        return reasons

    # ------------------------------------------------------------------ transforms

    def with_columns(
        self,
        columns: Mapping[str, Iterable],
        kinds: Optional[Mapping[str, ColumnKind]] = None,
        warmup: Optional[Mapping[str, int]] = None,
    ) -> 'TimeSeriesTable':
        """Return a new table with columns added or replaced."""
        data = dict(self._data)
        all_kinds = dict(self._kinds)
        all_warmup = dict(self._warmup)
        for name in columns:
            all_kinds.pop(name, None)
            all_warmup.pop(name, None)
        data.update(columns)
        all_kinds.update(kinds or {})
        all_warmup.update(warmup or {})
        return TimeSeriesTable(self._index, data, kinds=all_kinds, warmup=all_warmup)

    def select(self, names: Sequence[str]) -> 'TimeSeriesTable':
        for name in names:
            self._require(name)
        return TimeSeriesTable(
            self._index,
            {n: self._data[n] for n in names},
            kinds={n: self._kinds[n] for n in names},
            warmup={n: w for n, w in self._warmup.items() if n in names},
        )

    def drop(self, names: Sequence[str]) -> 'TimeSeriesTable':
        keep = [c for c in self._data if c not in set(names)]
        return self.select(keep)

    def take_rows(self, positions) -> 'TimeSeriesTable':
        """Return a new table restricted to the given row positions or mask."""
        positions = np.asarray(positions)
        if positions.dtype == bool:
            positions = np.flatnonzero(positions)
        return TimeSeriesTable(
            self._index[positions],
            {n: v[positions] for n, v in self._data.items()},
            kinds=self._kinds,
            # warmup rows that survive the selection stay leading rows
            warmup={n: int(np.count_nonzero(positions < w)) for n, w in self._warmup.items()},
        )

    def _require(self, name: str):
        if name not in self._data:
            raise PipelineError("Unknown column", stage='table', column=name)
