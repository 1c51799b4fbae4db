"""Merge auxiliary series onto the primary series' timestamps."""
import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from ..core.table import ColumnKind, TimeSeriesTable
from ..errors import AlignmentError, ColumnTypeError

logger = logging.getLogger(__name__)


def fill_gaps(table: TimeSeriesTable) -> TimeSeriesTable:
    """Forward-fill then backward-fill every numeric column.

    Columns with no data at all cannot be filled and are dropped; they are
    never substituted with zeros.
    """
    empty = []
    filled = {}
    for name, kind in table.kinds.items():
        if kind != ColumnKind.NUMERIC:
            continue
        series = table.series(name)
        if series.notna().sum() == 0:
            empty.append(name)
            continue
        filled[name] = series.ffill().bfill().to_numpy()

    if empty:
        logger.warning("Dropping columns with no data after alignment: %s", empty)
    return table.drop(empty).with_columns(filled) if filled or empty else table


def align(
    primary: TimeSeriesTable,
    auxiliaries: Optional[Sequence[TimeSeriesTable]] = None,
    fill: bool = True,
) -> TimeSeriesTable:
    """Left-join auxiliary tables onto the primary timestamps.

    Matching is exact: an auxiliary row contributes only where its
    timestamp equals a primary timestamp, there is no interpolation across
    different granularities. Unmatched cells are NaN until ``fill_gaps``.

    Args:
        primary: Price (and indicator) table that defines the time axis
        auxiliaries: Tables of numeric auxiliary columns
        fill: Run forward/backward fill after merging

    Returns:
        The combined table

    Raises:
        AlignmentError: If an auxiliary column name collides with an existing one
        ColumnTypeError: If an auxiliary column is not numeric
    """
    index = primary.timestamps
    merged = {}
    for aux in auxiliaries or []:
        for name, kind in aux.kinds.items():
            if name in primary or name in merged:
                raise AlignmentError("Auxiliary column collides with an existing column",
                                     stage='align', column=name)
            if kind != ColumnKind.NUMERIC:
                raise ColumnTypeError(f"Auxiliary columns must be numeric, got {kind.value}",
                                      stage='align', column=name)
            series = pd.Series(aux.numeric(name), index=aux.timestamps)
            merged[name] = series.reindex(index).to_numpy(dtype=float)

    for name, values in merged.items():
        matched = int(np.count_nonzero(~np.isnan(values)))
        logger.debug("Aligned %s: %d/%d timestamps matched", name, matched, len(index))

    combined = primary.with_columns(merged, kinds={n: ColumnKind.NUMERIC for n in merged})
    return fill_gaps(combined) if fill else combined
