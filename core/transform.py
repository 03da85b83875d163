"""View transformer: reduce a dataset to display rows (sample / aggregate / all).

Every output frame has a zero-based ``index`` column, a numeric ``y`` column
(non-numeric cells become 0) and a boolean ``_numeric`` flag recording whether
the source value was numeric before the zero-fill.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from core.dataset import TabularDataset, coerce_numeric
from core.errors import InvalidKeyBinding
from core.settings import ViewSettings


def sample_indices(n: int, sample_size: int) -> List[int]:
    """Row positions kept by sample mode.

    Always ``min(n, sample_size)`` ascending positions; the first and last rows
    are kept whenever two or more positions fit.
    """
    if n <= 0:
        return []
    if n <= sample_size:
        return list(range(n))
    if sample_size <= 1:
        return [0]
    slots = sample_size - 2
    if slots == 0:
        return [0, n - 1]

    step = n // slots
    middle = list(range(step, n - 1, step))[:slots]
    if len(middle) < slots:
        chosen = set(middle)
        spare = [i for i in range(1, n - 1) if i not in chosen]
        picks = np.linspace(0, len(spare) - 1, slots - len(middle)).round().astype(int)
        middle = sorted(chosen.union(spare[p] for p in picks))
    return [0, *middle, n - 1]


def _numeric_mask(series: pd.Series) -> pd.Series:
    parsed = pd.to_numeric(series.astype(str).str.strip(), errors="coerce")
    return parsed.notna() & ~parsed.isin([np.inf, -np.inf])


def _reduce(values: List[float], function: str) -> float:
    if function == "count":
        return float(len(values))
    if not values:
        return 0.0
    if function == "avg":
        return float(sum(values) / len(values))
    if function == "max":
        return float(max(values))
    if function == "min":
        return float(min(values))
    return float(sum(values))


def aggregate_rows(frame: pd.DataFrame, aggregate_by: str, y_key: str, function: str) -> pd.DataFrame:
    """One row per distinct ``aggregate_by`` value, in first-seen order."""
    columns = list(dict.fromkeys([aggregate_by, y_key, "_count", "_originalValues", "_numeric"]))
    if frame.empty:
        return pd.DataFrame(columns=columns)

    keys = frame[aggregate_by].astype(str)
    values = coerce_numeric(frame[y_key])
    numeric = _numeric_mask(frame[y_key])
    records: List[Dict[str, Any]] = []
    for key, group in values.groupby(keys, sort=False):
        originals = [float(v) for v in group.tolist()]
        record: Dict[str, Any] = {aggregate_by: key}
        record[y_key] = _reduce(originals, function)
        record["_count"] = len(originals)
        record["_originalValues"] = originals
        record["_numeric"] = bool(numeric.loc[group.index].any())
        records.append(record)
    return pd.DataFrame.from_records(records, columns=columns)


def apply_view(dataset: TabularDataset, settings: ViewSettings, y_key: str) -> pd.DataFrame:
    if not dataset.headers:
        return pd.DataFrame(columns=["index"])
    if y_key not in dataset.headers:
        raise InvalidKeyBinding(y_key, dataset.headers)

    frame = dataset.to_frame()
    if settings.view_mode == "aggregate":
        aggregate_by = settings.aggregate_by if settings.aggregate_by in dataset.headers else dataset.headers[0]
        out = aggregate_rows(frame, aggregate_by, y_key, settings.aggregate_function)
    else:
        if settings.view_mode == "sample":
            frame = frame.iloc[sample_indices(len(frame), settings.sample_size)]
        out = frame.reset_index(drop=True)
        out["_numeric"] = _numeric_mask(out[y_key]) if not out.empty else pd.Series(dtype=bool)

    out = out.reset_index(drop=True)
    out["index"] = np.arange(len(out), dtype=int)
    out[y_key] = coerce_numeric(out[y_key]) if not out.empty else pd.Series(dtype=float)
    return out


@lru_cache(maxsize=64)
def cached_view(dataset: TabularDataset, settings: ViewSettings, y_key: str) -> pd.DataFrame:
    """Memoised ``apply_view``; the returned frame is shared, copy before mutating."""
    return apply_view(dataset, settings, y_key)


def view_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    return frame.to_dict(orient="records")
